"""Pure geometric utilities shared by the intersection and fitting modules.

This module holds the tolerance policy, triangle plane computations, plane
bases, point transforms and a Qhull wrapper that survives degenerate input.
"""

import logging

from dataclasses import dataclass

import numpy as np

from omegaconf import DictConfig
from scipy.spatial import ConvexHull
from scipy.spatial._qhull import QhullError

from romintersect.errors import DegenerateGeometryError

console_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeometryTolerance:
    """Single epsilon policy for the geometry kernels.

    The same value is used for every near-zero decision: zero-area triangles,
    snapping signed distances onto a plane, parallel plane normals and
    touching intervals. Values are in length units (meters for Drake scenes).
    """

    epsilon: float = 1e-9
    """Magnitudes not greater than this are treated as exactly zero."""

    def __post_init__(self) -> None:
        if not self.epsilon >= 0.0:
            raise ValueError(f"epsilon must be non-negative, got {self.epsilon}")

    def snap(self, values: np.ndarray) -> np.ndarray:
        """Return a copy of `values` with near-zero entries replaced by 0.0."""
        snapped = np.array(values, dtype=float)
        snapped[np.abs(snapped) <= self.epsilon] = 0.0
        return snapped

    @classmethod
    def from_config(cls, cfg: DictConfig) -> "GeometryTolerance":
        """Create tolerance from Hydra/OmegaConf structure.

        Args:
            cfg: Tolerance config subtree (cfg.intersection.tolerance).

        Returns:
            GeometryTolerance instance.
        """
        return cls(epsilon=float(cfg.epsilon))


DEFAULT_TOLERANCE = GeometryTolerance()


def triangle_normal(triangle: np.ndarray) -> np.ndarray:
    """Unnormalized normal (v1 - v0) x (v2 - v0) of a (3, 3) triangle."""
    return np.cross(triangle[1] - triangle[0], triangle[2] - triangle[0])


def degenerate_triangle_mask(
    triangles: np.ndarray, tolerance: GeometryTolerance = DEFAULT_TOLERANCE
) -> np.ndarray:
    """Flag (near) zero-area triangles in an (N, 3, 3) array.

    Returns:
        Boolean array of shape (N,), True for zero-area triangles.
    """
    if len(triangles) == 0:
        return np.zeros(0, dtype=bool)
    normals = np.cross(
        triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0]
    )
    return np.linalg.norm(normals, axis=1) <= tolerance.epsilon


def triangle_plane(
    triangle: np.ndarray, tolerance: GeometryTolerance = DEFAULT_TOLERANCE
) -> tuple[np.ndarray, float]:
    """Compute the plane n . x = d of a triangle.

    Args:
        triangle: Array of shape (3, 3) with the vertices in order.
        tolerance: Epsilon policy used for the zero-area check.

    Returns:
        Tuple of (unit normal following the vertex winding, offset d).

    Raises:
        DegenerateGeometryError: If the triangle has zero area.
    """
    normal = triangle_normal(triangle)
    length = float(np.linalg.norm(normal))
    if length <= tolerance.epsilon:
        raise DegenerateGeometryError(
            f"Triangle has zero area (|normal| = {length:.3e}): {triangle.tolist()}"
        )
    normal = normal / length
    return normal, float(normal @ triangle[0])


def plane_basis(normal: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Build an orthonormal in-plane basis (u, v) with u x v = normal.

    Args:
        normal: Plane normal (3,), need not be unit length.

    Returns:
        Tuple of unit vectors (u, v) spanning the plane.

    Raises:
        DegenerateGeometryError: If the normal has zero length.
    """
    length = float(np.linalg.norm(normal))
    if length == 0.0:
        raise DegenerateGeometryError("Cannot build a plane basis from a zero normal")
    z_axis = normal / length

    # Pick a helper axis that is not parallel to the normal.
    world_x = np.array([1.0, 0.0, 0.0])
    v_axis = np.cross(z_axis, world_x)
    if np.linalg.norm(v_axis) < 1e-6:
        world_y = np.array([0.0, 1.0, 0.0])
        v_axis = np.cross(z_axis, world_y)
    v_axis /= np.linalg.norm(v_axis)

    # u = v x n keeps (u, v, n) right-handed.
    u_axis = np.cross(v_axis, z_axis)
    u_axis /= np.linalg.norm(u_axis)
    return u_axis, v_axis


def transform_points(
    points: np.ndarray, rotation: np.ndarray, translation: np.ndarray
) -> np.ndarray:
    """Apply x -> R x + t to every point of an (..., 3) array."""
    return np.asarray(points, dtype=float) @ np.asarray(rotation, dtype=float).T + (
        np.asarray(translation, dtype=float)
    )


def safe_convex_hull_2d(vertices_2d: np.ndarray) -> np.ndarray | None:
    """Safely compute the ordered 2D convex hull with degenerate input handling.

    Prevents Qhull issues by:
    1. Ensuring C-contiguous array layout
    2. Removing duplicate vertices
    3. Checking for minimum vertex count

    Args:
        vertices_2d: Array of shape (N, 2) with 2D vertices.

    Returns:
        Indices into `vertices_2d` of the hull vertices in counter-clockwise
        order, or None if the input is degenerate (fewer than 3 distinct
        points, or all points collinear).
    """
    vertices = np.ascontiguousarray(vertices_2d, dtype=float)

    # Remove duplicate vertices but remember where they came from.
    unique_vertices, first_index = np.unique(vertices, axis=0, return_index=True)

    # Need at least 3 points for a 2D hull.
    if len(unique_vertices) < 3:
        return None

    try:
        hull = ConvexHull(unique_vertices)
    except (QhullError, ValueError) as e:
        console_logger.debug(f"Qhull rejected {len(unique_vertices)} points: {e}")
        return None

    # For 2D input Qhull already lists hull.vertices counter-clockwise.
    return first_index[hull.vertices]
