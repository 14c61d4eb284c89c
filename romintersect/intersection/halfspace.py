"""Half-space representation of a convex ROM mesh and point containment.

A convex triangulated surface with outward-facing triangles is the intersection
of the closed half-spaces behind each face plane:

    {x : A x <= b},   A[i] = unit outward normal of face i,
                      b[i] = A[i] . v0 of face i.

Convexity of the input mesh is a precondition and is not checked here.
"""

import logging

from dataclasses import dataclass

import numpy as np

from romintersect.errors import DegenerateGeometryError
from romintersect.utils.geometry_utils import (
    DEFAULT_TOLERANCE,
    GeometryTolerance,
    degenerate_triangle_mask,
)

console_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HalfSpaceSet:
    """Inequality description {x : normals @ x <= offsets} of a convex mesh."""

    normals: np.ndarray
    """Unit outward face normals A, shape (F, 3)."""

    offsets: np.ndarray
    """Face plane offsets b, shape (F,)."""

    face_vertices: np.ndarray
    """First vertex of every face, shape (F, 3), kept for plane membership tests."""

    @property
    def num_faces(self) -> int:
        return len(self.offsets)


def build_halfspace_set(
    triangles: np.ndarray, tolerance: GeometryTolerance = DEFAULT_TOLERANCE
) -> HalfSpaceSet:
    """Build the face-plane inequalities of a convex mesh.

    Args:
        triangles: World-frame triangles of shape (F, 3, 3) with outward
            (counter-clockwise seen from outside) winding.
        tolerance: Epsilon policy used to reject zero-area faces.

    Returns:
        HalfSpaceSet with one row per triangle.

    Raises:
        ValueError: If no triangles are given.
        DegenerateGeometryError: If any triangle has zero area.
    """
    triangles = np.asarray(triangles, dtype=float)
    if triangles.ndim != 3 or triangles.shape[1:] != (3, 3):
        raise ValueError(f"Expected triangles of shape (F, 3, 3), got {triangles.shape}")
    if len(triangles) == 0:
        raise ValueError("Cannot build a half-space set from an empty mesh")

    degenerate = degenerate_triangle_mask(triangles, tolerance)
    if np.any(degenerate):
        indices = np.flatnonzero(degenerate).tolist()
        raise DegenerateGeometryError(
            f"ROM mesh has {len(indices)} zero-area triangles (indices {indices[:10]})"
        )

    edges_1 = triangles[:, 1] - triangles[:, 0]
    edges_2 = triangles[:, 2] - triangles[:, 0]
    normals = np.cross(edges_1, edges_2)
    normals /= np.linalg.norm(normals, axis=1, keepdims=True)

    face_vertices = triangles[:, 0].copy()
    offsets = np.einsum("ij,ij->i", normals, face_vertices)

    console_logger.debug(f"Built half-space set with {len(offsets)} faces")
    return HalfSpaceSet(normals=normals, offsets=offsets, face_vertices=face_vertices)


def signed_distances(halfspaces: HalfSpaceSet, points: np.ndarray) -> np.ndarray:
    """Signed distance of every point to every face plane.

    Args:
        halfspaces: Face inequalities.
        points: Query points of shape (N, 3) or a single point (3,).

    Returns:
        Array of shape (N, F) (or (F,) for a single point); positive values
        lie outside the corresponding face.
    """
    points = np.asarray(points, dtype=float)
    return points @ halfspaces.normals.T - halfspaces.offsets


def is_inside(
    halfspaces: HalfSpaceSet, point: np.ndarray, tolerance: float = 0.0
) -> bool:
    """Check whether a point lies in the closed convex region.

    Args:
        halfspaces: Face inequalities of the convex mesh.
        point: Query point (3,).
        tolerance: Allowed positive slack per face, in length units.

    Returns:
        True iff A x - b <= tolerance for every face.
    """
    return bool(np.all(signed_distances(halfspaces, point) <= tolerance))


def contains_points(
    halfspaces: HalfSpaceSet, points: np.ndarray, tolerance: float = 0.0
) -> np.ndarray:
    """Vectorised `is_inside` over an (N, 3) point array.

    Returns:
        Boolean mask of shape (N,).
    """
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    if len(points) == 0:
        return np.zeros(0, dtype=bool)
    return np.all(signed_distances(halfspaces, points) <= tolerance, axis=1)
