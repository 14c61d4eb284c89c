"""Rigid mesh interface and FCL broad-phase collision check.

The intersection orchestrator only needs three things from a mesh: its
triangles in the body frame and the body pose in the world. Anything that
provides them satisfies `RigidMesh`; `TrimeshRigidBody` is the concrete adapter
for a `trimesh.Trimesh` placed by a Drake `RigidTransform`.
"""

import logging

from dataclasses import dataclass, field
from typing import Callable, Protocol, runtime_checkable

import numpy as np
import trimesh

from pydrake.math import RigidTransform

from romintersect.utils.geometry_utils import transform_points

console_logger = logging.getLogger(__name__)


@runtime_checkable
class RigidMesh(Protocol):
    """Triangulated surface attached to a rigid body."""

    def triangles(self) -> np.ndarray:
        """Triangles of shape (N, 3, 3) expressed in the body frame."""
        ...

    def rotation(self) -> np.ndarray:
        """Rotation matrix R_WB of shape (3, 3)."""
        ...

    def translation(self) -> np.ndarray:
        """Translation p_WB of shape (3,)."""
        ...


def world_triangles(mesh: RigidMesh) -> np.ndarray:
    """Express the mesh triangles in the world frame.

    Args:
        mesh: Mesh collaborator.

    Returns:
        Array of shape (N, 3, 3) with every vertex mapped through R v + t.
    """
    triangles = np.asarray(mesh.triangles(), dtype=float).reshape(-1, 3, 3)
    return transform_points(triangles, mesh.rotation(), mesh.translation())


def mesh_pose_matrix(mesh: RigidMesh) -> np.ndarray:
    """4x4 homogeneous pose of a mesh, as expected by trimesh and FCL."""
    matrix = np.eye(4)
    matrix[:3, :3] = np.asarray(mesh.rotation(), dtype=float)
    matrix[:3, 3] = np.asarray(mesh.translation(), dtype=float)
    return matrix


@dataclass
class TrimeshRigidBody:
    """`RigidMesh` adapter for a trimesh surface posed by a Drake transform."""

    mesh: trimesh.Trimesh
    """Surface geometry in the body frame."""

    X_WB: RigidTransform = field(default_factory=RigidTransform)
    """Pose of the body in the world frame."""

    def triangles(self) -> np.ndarray:
        return np.asarray(self.mesh.triangles, dtype=float)

    def rotation(self) -> np.ndarray:
        return self.X_WB.rotation().matrix()

    def translation(self) -> np.ndarray:
        return np.asarray(self.X_WB.translation(), dtype=float)


@dataclass
class CollisionResult:
    """Outcome of the broad-phase check between two meshes."""

    is_collision: bool
    """Whether FCL reports contact; a convex ROM counts as a solid volume."""

    contact_points: np.ndarray = field(default_factory=lambda: np.empty((0, 3)))
    """World-frame contact points reported by FCL, shape (K, 3)."""


CollisionChecker = Callable[[RigidMesh, RigidMesh], CollisionResult]
"""Signature of an injectable broad-phase check."""


def _mesh_to_trimesh(mesh: RigidMesh) -> trimesh.Trimesh:
    triangles = np.asarray(mesh.triangles(), dtype=float).reshape(-1, 3, 3)
    return trimesh.Trimesh(**trimesh.triangles.to_kwargs(triangles))


def collide_meshes(rom: RigidMesh, affordance: RigidMesh) -> CollisionResult:
    """Run the FCL broad-phase check between two posed meshes.

    Uses trimesh's CollisionManager (python-fcl backend). Both surfaces are
    added in their body frame together with their world pose. trimesh hands
    convex meshes to FCL as `fcl.Convex` solids, so the convex ROM acts as a
    volume: a surface lying entirely inside it is reported as colliding.

    Args:
        rom: Reachable-volume mesh.
        affordance: Candidate surface mesh.

    Returns:
        CollisionResult with the verdict and the reported contact points.
    """
    rom_manager = trimesh.collision.CollisionManager()
    rom_manager.add_object("rom", _mesh_to_trimesh(rom), transform=mesh_pose_matrix(rom))

    affordance_manager = trimesh.collision.CollisionManager()
    affordance_manager.add_object(
        "affordance",
        _mesh_to_trimesh(affordance),
        transform=mesh_pose_matrix(affordance),
    )

    is_collision, contacts = rom_manager.in_collision_other(
        affordance_manager, return_data=True
    )
    if contacts:
        contact_points = np.array([contact.point for contact in contacts], dtype=float)
    else:
        contact_points = np.empty((0, 3))

    console_logger.debug(
        f"Broad phase: collision={is_collision}, {len(contact_points)} contacts"
    )
    return CollisionResult(
        is_collision=bool(is_collision), contact_points=contact_points
    )
