"""Intersection region between a reachable-volume mesh and an affordance mesh.

The region is the part of the affordance surface that lies inside the convex
ROM volume, summarised by its outer boundary:

1. Both meshes are expressed in the world frame.
2. The ROM becomes a half-space set; affordance vertices inside it belong to
   the region.
3. An FCL broad-phase check skips the triangle stage when the surfaces do not
   touch and nothing lies inside.
4. Every (affordance, ROM) triangle pair contributes its intersection points.
5. The collected points are ordered by a planar convex hull and resampled so
   no boundary edge is longer than the resample length.
"""

import logging
import math

from dataclasses import dataclass, field

import numpy as np

from omegaconf import DictConfig
from tqdm import tqdm

from romintersect.errors import DegenerateGeometryError
from romintersect.fitting.plane_fit import fit_plane, to_plane_coordinates
from romintersect.intersection.halfspace import build_halfspace_set, contains_points
from romintersect.intersection.rigid_mesh import (
    CollisionChecker,
    RigidMesh,
    collide_meshes,
    world_triangles,
)
from romintersect.intersection.triangle_intersection import triangle_intersection
from romintersect.utils.geometry_utils import (
    DEFAULT_TOLERANCE,
    GeometryTolerance,
    degenerate_triangle_mask,
    safe_convex_hull_2d,
)

console_logger = logging.getLogger(__name__)


@dataclass
class IntersectionConfig:
    """Parameters of the intersection region computation."""

    noise_edge_length: float = 0.01
    """Hull edges not longer than this are ignored when picking the resample
    length."""

    min_resample_length: float = 0.1
    """Lower bound for the resample length."""

    aabb_prefilter: bool = True
    """Skip ROM triangles whose bounding box misses the affordance bounding box."""

    show_progress: bool = False
    """Show a tqdm progress bar over affordance triangles."""

    tolerance: GeometryTolerance = field(default_factory=GeometryTolerance)
    """Epsilon policy shared by all geometric predicates."""

    def __post_init__(self) -> None:
        if self.noise_edge_length < 0.0:
            raise ValueError(
                f"noise_edge_length must be non-negative, got {self.noise_edge_length}"
            )
        if self.min_resample_length <= 0.0:
            raise ValueError(
                f"min_resample_length must be positive, got {self.min_resample_length}"
            )

    @classmethod
    def from_config(cls, cfg: DictConfig) -> "IntersectionConfig":
        """Create config from Hydra/OmegaConf nested structure.

        Args:
            cfg: Intersection config subtree.

        Returns:
            IntersectionConfig instance.
        """
        return cls(
            # Boundary resampling.
            noise_edge_length=cfg.resampling.noise_edge_length,
            min_resample_length=cfg.resampling.min_resample_length,
            # Pair loop.
            aabb_prefilter=cfg.aabb_prefilter,
            show_progress=cfg.show_progress,
            tolerance=GeometryTolerance.from_config(cfg.tolerance),
        )


@dataclass
class IntersectionRegion:
    """Overlap between the affordance surface and the ROM volume."""

    boundary: np.ndarray
    """Ordered, resampled boundary points (N, 3); empty when nothing overlaps."""

    points: np.ndarray
    """All accumulated points before ordering (M, 3)."""

    num_interior_vertices: int = 0
    """Number of distinct affordance vertices inside the ROM."""

    in_collision: bool = False
    """Broad-phase verdict for the two surfaces."""

    contact_points: np.ndarray = field(default_factory=lambda: np.empty((0, 3)))
    """Contact points reported by the broad phase (K, 3)."""

    @property
    def is_empty(self) -> bool:
        return len(self.boundary) == 0

    @classmethod
    def empty(cls) -> "IntersectionRegion":
        return cls(boundary=np.empty((0, 3)), points=np.empty((0, 3)))


def _drop_degenerate(
    triangles: np.ndarray, mesh_name: str, tolerance: GeometryTolerance
) -> np.ndarray:
    degenerate = degenerate_triangle_mask(triangles, tolerance)
    if np.any(degenerate):
        console_logger.warning(
            f"Dropping {int(degenerate.sum())} zero-area triangles from {mesh_name}"
        )
    return triangles[~degenerate]


def _order_along_principal_direction(points: np.ndarray) -> np.ndarray:
    if len(points) < 2:
        return points
    centred = points - points.mean(axis=0)
    _, _, vt = np.linalg.svd(centred)
    return points[np.argsort(centred @ vt[0])]


def _order_boundary(
    points: np.ndarray, tolerance: GeometryTolerance
) -> tuple[np.ndarray, bool]:
    """Ordered boundary and whether it is a closed hull polygon."""
    unique_points = np.unique(np.asarray(points, dtype=float).reshape(-1, 3), axis=0)
    if len(unique_points) < 3:
        return _order_along_principal_direction(unique_points), False

    # Second singular value measures the spread off the principal line.
    spread = np.linalg.svd(unique_points - unique_points.mean(axis=0), compute_uv=False)
    if spread[1] <= tolerance.epsilon:
        return _order_along_principal_direction(unique_points), False

    plane = fit_plane(unique_points)

    hull_indices = safe_convex_hull_2d(to_plane_coordinates(unique_points, plane))
    if hull_indices is None:
        console_logger.warning(
            f"Convex hull of {len(unique_points)} points is degenerate, "
            "ordering along principal direction"
        )
        return _order_along_principal_direction(unique_points), False

    return unique_points[hull_indices], True


def compute_ordered_boundary(
    points: np.ndarray, tolerance: GeometryTolerance = DEFAULT_TOLERANCE
) -> np.ndarray:
    """Order points along the convex hull of their best-fit plane.

    Args:
        points: Intersection points of shape (N, 3), possibly with duplicates.
        tolerance: Epsilon policy for the collinearity check.

    Returns:
        Hull vertices (K, 3) in counter-clockwise order around the plane normal.
        Fewer than three distinct points, or collinear points, are returned
        sorted along their principal direction as an open polyline.
    """
    boundary, _ = _order_boundary(points, tolerance)
    return boundary


def resample_boundary(
    boundary: np.ndarray,
    noise_edge_length: float = 0.01,
    min_resample_length: float = 0.1,
    closed: bool = True,
) -> np.ndarray:
    """Subdivide the edges of a boundary polyline.

    The resample length m is the shortest edge longer than `noise_edge_length`,
    but never less than `min_resample_length`. Each edge of length L is split
    into ceil(L / m) equal pieces.

    Args:
        boundary: Ordered boundary points (N, 3).
        noise_edge_length: Edges not longer than this do not set m.
        min_resample_length: Floor of m.
        closed: Whether the last point connects back to the first. An open
            polyline keeps its last point and gets no closing edge.

    Returns:
        Resampled boundary (M, 3), M >= N, starting at boundary[0] and without a
        repeated closing point. An open polyline ends at boundary[-1].
    """
    boundary = np.asarray(boundary, dtype=float)
    if len(boundary) < 2:
        return boundary

    if closed:
        edges = np.roll(boundary, -1, axis=0) - boundary
    else:
        edges = np.diff(boundary, axis=0)
    lengths = np.linalg.norm(edges, axis=1)

    significant = lengths[lengths > noise_edge_length]
    resample_length = min_resample_length
    if len(significant) > 0:
        resample_length = max(float(significant.min()), min_resample_length)

    resampled = []
    for start, edge, length in zip(boundary, edges, lengths):
        pieces = max(1, math.ceil(length / resample_length))
        for k in range(pieces):
            resampled.append(start + edge * (k / pieces))
    if not closed:
        resampled.append(boundary[-1])

    console_logger.debug(
        f"Resampled boundary from {len(boundary)} to {len(resampled)} points "
        f"(resample length {resample_length:.4f})"
    )
    return np.array(resampled)


def _prefilter_rom_triangles(
    rom_triangles: np.ndarray,
    affordance_triangles: np.ndarray,
    tolerance: GeometryTolerance,
) -> np.ndarray:
    affordance_vertices = affordance_triangles.reshape(-1, 3)
    affordance_min = affordance_vertices.min(axis=0) - tolerance.epsilon
    affordance_max = affordance_vertices.max(axis=0) + tolerance.epsilon

    overlaps = np.all(rom_triangles.min(axis=1) <= affordance_max, axis=1) & np.all(
        rom_triangles.max(axis=1) >= affordance_min, axis=1
    )
    return rom_triangles[overlaps]


def compute_intersection_region(
    rom: RigidMesh,
    affordance: RigidMesh,
    config: IntersectionConfig | None = None,
    collision_checker: CollisionChecker | None = None,
) -> IntersectionRegion:
    """Compute the boundary of the affordance region inside the ROM volume.

    Args:
        rom: Convex reachable-volume mesh with outward-facing triangles.
        affordance: Candidate surface mesh.
        config: Algorithm parameters; defaults to IntersectionConfig().
        collision_checker: Broad-phase check; defaults to FCL via trimesh.

    Returns:
        IntersectionRegion. The region is empty (not an error) when the meshes
        do not overlap.

    Raises:
        ValueError: If the ROM mesh has no non-degenerate triangles.
    """
    config = config or IntersectionConfig()
    collision_checker = collision_checker or collide_meshes
    tolerance = config.tolerance

    rom_triangles = _drop_degenerate(world_triangles(rom), "ROM mesh", tolerance)
    affordance_triangles = _drop_degenerate(
        world_triangles(affordance), "affordance mesh", tolerance
    )
    if len(affordance_triangles) == 0:
        console_logger.warning("Affordance mesh has no usable triangles")
        return IntersectionRegion.empty()

    halfspaces = build_halfspace_set(rom_triangles, tolerance)

    affordance_vertices = np.unique(affordance_triangles.reshape(-1, 3), axis=0)
    inside = contains_points(halfspaces, affordance_vertices, tolerance.epsilon)
    interior_vertices = affordance_vertices[inside]
    console_logger.debug(
        f"{len(interior_vertices)} of {len(affordance_vertices)} affordance vertices "
        "lie inside the ROM"
    )

    collision = collision_checker(rom, affordance)
    if not collision.is_collision and len(interior_vertices) == 0:
        console_logger.info("Affordance does not intersect the ROM")
        return IntersectionRegion.empty()

    if config.aabb_prefilter:
        candidate_triangles = _prefilter_rom_triangles(
            rom_triangles, affordance_triangles, tolerance
        )
        console_logger.debug(
            f"AABB prefilter kept {len(candidate_triangles)} of "
            f"{len(rom_triangles)} ROM triangles"
        )
    else:
        candidate_triangles = rom_triangles

    collected = [interior_vertices]
    for affordance_triangle in tqdm(
        affordance_triangles,
        desc="Intersecting triangles",
        disable=not config.show_progress,
    ):
        for rom_triangle in candidate_triangles:
            try:
                segment = triangle_intersection(
                    rom_triangle, affordance_triangle, tolerance
                )
            except DegenerateGeometryError as e:
                console_logger.warning(f"Skipping triangle pair: {e}")
                continue
            if len(segment) > 0:
                collected.append(segment)

    points = np.vstack(collected)
    if len(points) == 0:
        console_logger.info("Broad phase reported contact but no intersection found")
        return IntersectionRegion.empty()

    ordered, closed = _order_boundary(points, tolerance)
    boundary = resample_boundary(
        ordered,
        noise_edge_length=config.noise_edge_length,
        min_resample_length=config.min_resample_length,
        closed=closed,
    )
    console_logger.info(
        f"Intersection boundary has {len(boundary)} points "
        f"({len(points)} raw points, {len(interior_vertices)} interior vertices)"
    )
    return IntersectionRegion(
        boundary=boundary,
        points=points,
        num_interior_vertices=len(interior_vertices),
        in_collision=collision.is_collision,
        contact_points=collision.contact_points,
    )
