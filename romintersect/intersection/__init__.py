"""Intersection of a convex reachable-volume mesh with an affordance mesh."""

from romintersect.intersection.halfspace import (
    HalfSpaceSet,
    build_halfspace_set,
    contains_points,
    is_inside,
)
from romintersect.intersection.mesh_intersection import (
    IntersectionConfig,
    IntersectionRegion,
    compute_intersection_region,
    compute_ordered_boundary,
    resample_boundary,
)
from romintersect.intersection.rigid_mesh import (
    CollisionResult,
    RigidMesh,
    TrimeshRigidBody,
    collide_meshes,
    world_triangles,
)
from romintersect.intersection.triangle_intersection import triangle_intersection

__all__ = [
    "CollisionResult",
    "HalfSpaceSet",
    "IntersectionConfig",
    "IntersectionRegion",
    "RigidMesh",
    "TrimeshRigidBody",
    "build_halfspace_set",
    "collide_meshes",
    "compute_intersection_region",
    "compute_ordered_boundary",
    "contains_points",
    "is_inside",
    "resample_boundary",
    "triangle_intersection",
    "world_triangles",
]
