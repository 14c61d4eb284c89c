"""Reduce a 3D intersection boundary to a planar circle or ellipse."""

import logging

from dataclasses import dataclass
from typing import Literal

import numpy as np

from romintersect.errors import NoValidEllipseError, TooFewPointsError
from romintersect.fitting.conic_fit import (
    Circle,
    Ellipse,
    conic_to_shape,
    direct_circle,
    direct_ellipse,
)
from romintersect.fitting.plane_fit import (
    PlaneFit,
    fit_plane,
    from_plane_coordinates,
    project_to_plane,
    to_plane_coordinates,
)

console_logger = logging.getLogger(__name__)

ShapeKind = Literal["auto", "ellipse", "circle"]


@dataclass(frozen=True)
class BoundaryShapeFit:
    """Conic fitted to an intersection boundary and the plane it lives in."""

    plane: PlaneFit
    """Plane the boundary was projected onto; its basis defines the 2D frame."""

    params: np.ndarray
    """Unit-norm conic coefficients (A, B, C, D, E, F) in plane coordinates."""

    shape: Circle | Ellipse
    """Decoded shape in plane coordinates."""

    center_world: np.ndarray
    """Shape centre mapped back to the world frame (3,)."""

    @property
    def kind(self) -> str:
        return "circle" if isinstance(self.shape, Circle) else "ellipse"

    def to_dict(self) -> dict:
        """JSON-serializable summary of the fit."""
        result = {
            "kind": self.kind,
            "params": self.params.tolist(),
            "plane_normal": self.plane.normal.tolist(),
            "plane_centroid": self.plane.centroid.tolist(),
            "center_world": self.center_world.tolist(),
        }
        if isinstance(self.shape, Circle):
            result["radius"] = self.shape.radius
        else:
            result["major_radius"] = self.shape.major_radius
            result["minor_radius"] = self.shape.minor_radius
            result["rotation"] = self.shape.rotation
        return result


def fit_boundary_shape(
    boundary: np.ndarray, shape: ShapeKind = "auto"
) -> BoundaryShapeFit:
    """Fit a circle or an ellipse to an ordered 3D boundary.

    The boundary is projected onto its best-fit plane, expressed in the plane's
    2D basis and passed to the conic fitter.

    Args:
        boundary: Boundary points of shape (N, 3).
        shape: "ellipse", "circle", or "auto" to try an ellipse first and fall
            back to a circle when no valid ellipse exists or the boundary
            has fewer than 6 points.

    Returns:
        BoundaryShapeFit with the plane, conic and decoded shape.

    Raises:
        ValueError: If `shape` is not a known kind.
        TooFewPointsError: If the boundary has too few points for the fit.
        NoValidEllipseError: If `shape="ellipse"` and the ellipse fit fails.
    """
    if shape not in ("auto", "ellipse", "circle"):
        raise ValueError(f"Unknown shape kind: {shape}")

    plane = fit_plane(boundary)
    points_2d = to_plane_coordinates(project_to_plane(boundary, plane), plane)

    if shape == "circle":
        params = direct_circle(points_2d)
    elif shape == "ellipse":
        params = direct_ellipse(points_2d)
    else:
        try:
            params = direct_ellipse(points_2d)
        except (NoValidEllipseError, TooFewPointsError) as e:
            console_logger.warning(f"Ellipse fit failed ({e}), fitting a circle")
            params = direct_circle(points_2d)

    fitted_shape = conic_to_shape(params)
    center_world = from_plane_coordinates(fitted_shape.center, plane)[0]
    console_logger.info(f"Fitted {type(fitted_shape).__name__} at {center_world}")
    return BoundaryShapeFit(
        plane=plane, params=params, shape=fitted_shape, center_world=center_world
    )
