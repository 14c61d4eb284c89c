"""Least-squares plane fitting and projection of 3D point sets."""

import logging

from dataclasses import dataclass

import numpy as np

from romintersect.errors import TooFewPointsError
from romintersect.utils.geometry_utils import plane_basis

console_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaneFit:
    """Best-fit plane through a point set."""

    normal: np.ndarray
    """Unit normal (3,), sign chosen so its largest-magnitude component is positive."""

    centroid: np.ndarray
    """Mean of the fitted points (3,); lies on the plane."""

    @property
    def offset(self) -> float:
        """Plane offset d of n . x = d."""
        return float(self.normal @ self.centroid)

    def basis(self) -> tuple[np.ndarray, np.ndarray]:
        """Orthonormal in-plane axes (u, v) with u x v = normal."""
        return plane_basis(self.normal)


def fit_plane(points: np.ndarray) -> PlaneFit:
    """Fit a plane to 3D points by principal component analysis.

    The normal is the eigenvector of the smallest eigenvalue of the scatter
    matrix of the centred points.

    Args:
        points: Array of shape (N, 3), N >= 3.

    Returns:
        PlaneFit with unit normal and centroid.

    Raises:
        TooFewPointsError: If fewer than 3 points are given.
    """
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    if len(points) < 3:
        raise TooFewPointsError("fit_plane", required=3, received=len(points))

    centroid = points.mean(axis=0)
    centred = points - centroid
    scatter = centred.T @ centred

    # eigh returns eigenvalues in ascending order.
    _, eigenvectors = np.linalg.eigh(scatter)
    normal = eigenvectors[:, 0]

    # Make the orientation deterministic.
    if normal[np.argmax(np.abs(normal))] < 0.0:
        normal = -normal

    console_logger.debug(f"Fitted plane to {len(points)} points: normal={normal}")
    return PlaneFit(normal=normal, centroid=centroid)


def project_to_plane(points: np.ndarray, plane: PlaneFit) -> np.ndarray:
    """Project 3D points along the plane normal onto the plane."""
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    distances = (points - plane.centroid) @ plane.normal
    return points - np.outer(distances, plane.normal)


def to_plane_coordinates(points: np.ndarray, plane: PlaneFit) -> np.ndarray:
    """Express 3D points in the 2D (u, v) basis of the plane.

    The origin of the 2D frame is the plane centroid. Components along the
    normal are discarded.

    Returns:
        Array of shape (N, 2).
    """
    u_axis, v_axis = plane.basis()
    centred = np.asarray(points, dtype=float).reshape(-1, 3) - plane.centroid
    return np.column_stack([centred @ u_axis, centred @ v_axis])


def from_plane_coordinates(points_2d: np.ndarray, plane: PlaneFit) -> np.ndarray:
    """Map 2D plane coordinates back to 3D points on the plane."""
    u_axis, v_axis = plane.basis()
    points_2d = np.asarray(points_2d, dtype=float).reshape(-1, 2)
    return (
        plane.centroid
        + np.outer(points_2d[:, 0], u_axis)
        + np.outer(points_2d[:, 1], v_axis)
    )
