"""Plane and conic fitting for intersection boundaries."""

from romintersect.fitting.conic_fit import (
    Circle,
    Ellipse,
    conic_to_shape,
    direct_circle,
    direct_ellipse,
    get_radius,
    is_circle_conic,
)
from romintersect.fitting.plane_fit import PlaneFit, fit_plane, project_to_plane
from romintersect.fitting.shape_fit import BoundaryShapeFit, fit_boundary_shape

__all__ = [
    "BoundaryShapeFit",
    "Circle",
    "Ellipse",
    "PlaneFit",
    "conic_to_shape",
    "direct_circle",
    "direct_ellipse",
    "fit_boundary_shape",
    "fit_plane",
    "get_radius",
    "is_circle_conic",
    "project_to_plane",
]
