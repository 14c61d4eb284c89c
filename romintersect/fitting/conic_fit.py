"""Direct least-squares conic fitting on 2D point sets.

A conic is stored as the coefficient vector (A, B, C, D, E, F) of

    A x^2 + B x y + C y^2 + D x + E y + F = 0,

normalized to unit Euclidean norm. A vector with B == 0 and A == C (within the
tolerance) is read as a circle, anything else as a general ellipse. An
axis-aligned ellipse has B == 0 but A != C and stays an ellipse.

The ellipse fit is the direct method of Fitzgibbon, Pilu and Fisher with the
numerically stable reduction of Halir and Flusser ("Numerically Stable Direct
Least Squares Fitting of Ellipses", 1998).
"""

import logging
import math

from dataclasses import dataclass

import numpy as np

from romintersect.errors import (
    NoValidEllipseError,
    TooFewPointsError,
    WrongParameterCountError,
)
from romintersect.utils.geometry_utils import DEFAULT_TOLERANCE, GeometryTolerance

console_logger = logging.getLogger(__name__)

MIN_ELLIPSE_POINTS = 6
MIN_CIRCLE_POINTS = 3


def _as_points_2d(points_2d: np.ndarray) -> np.ndarray:
    points = np.asarray(points_2d, dtype=float)
    if points.ndim != 2 or points.shape[1] != 2:
        raise ValueError(f"Expected points of shape (N, 2), got {points.shape}")
    return points


def _normalize_conic(params: np.ndarray) -> np.ndarray:
    params = params / np.linalg.norm(params)
    # Fix the overall sign so equal conics compare equal.
    if params[0] < 0.0:
        params = -params
    return params


def direct_ellipse(points_2d: np.ndarray) -> np.ndarray:
    """Fit an ellipse to 2D points by direct least squares.

    Args:
        points_2d: Array of shape (N, 2), N >= 6.

    Returns:
        Unit-norm conic parameters (A, B, C, D, E, F) satisfying 4AC - B^2 > 0.

    Raises:
        TooFewPointsError: If fewer than 6 points are given.
        NoValidEllipseError: If the linear-term scatter matrix is singular
            (e.g. collinear points) or not exactly one eigenvector of the
            reduced system describes an ellipse.
    """
    points = _as_points_2d(points_2d)
    if len(points) < MIN_ELLIPSE_POINTS:
        raise TooFewPointsError(
            "direct_ellipse", required=MIN_ELLIPSE_POINTS, received=len(points)
        )

    # Centre the data for conditioning.
    mean_x, mean_y = points.mean(axis=0)
    x = points[:, 0] - mean_x
    y = points[:, 1] - mean_y

    quadratic = np.column_stack([x * x, x * y, y * y])
    linear = np.column_stack([x, y, np.ones_like(x)])
    if np.linalg.matrix_rank(linear) < 3:
        raise NoValidEllipseError(
            f"Cannot fit an ellipse to {len(points)} collinear points"
        )

    s1 = quadratic.T @ quadratic
    s2 = quadratic.T @ linear
    s3 = linear.T @ linear
    try:
        t = -np.linalg.solve(s3, s2.T)
    except np.linalg.LinAlgError as e:
        raise NoValidEllipseError(f"Singular linear scatter matrix: {e}") from e

    reduced = s1 + s2 @ t
    # Premultiply by the inverse of the constraint matrix [[0, 0, 2], [0, -1, 0], [2, 0, 0]].
    reduced = np.vstack([reduced[2] / 2.0, -reduced[1], reduced[0] / 2.0])

    _, eigenvectors = np.linalg.eig(reduced)
    eigenvectors = np.real(eigenvectors)
    condition = 4.0 * eigenvectors[0] * eigenvectors[2] - eigenvectors[1] ** 2
    candidates = np.flatnonzero(condition > 0.0)
    if len(candidates) != 1:
        raise NoValidEllipseError(
            f"Expected exactly one elliptic eigenvector, found {len(candidates)}"
        )

    quadratic_terms = eigenvectors[:, candidates[0]]
    a, b, c = quadratic_terms
    d, e, f = t @ quadratic_terms

    # Undo the centring.
    params = np.array(
        [
            a,
            b,
            c,
            d - 2.0 * a * mean_x - b * mean_y,
            e - 2.0 * c * mean_y - b * mean_x,
            f
            + a * mean_x**2
            + b * mean_x * mean_y
            + c * mean_y**2
            - d * mean_x
            - e * mean_y,
        ]
    )
    params = _normalize_conic(params)
    console_logger.debug(f"Fitted ellipse to {len(points)} points: {params}")
    return params


def direct_circle(points_2d: np.ndarray) -> np.ndarray:
    """Fit a circle as centroid plus mean radial distance.

    Args:
        points_2d: Array of shape (N, 2), N >= 3.

    Returns:
        Unit-norm conic parameters (1, 0, 1, -2cx, -2cy, cx^2 + cy^2 - r^2),
        scaled. B is exactly zero.

    Raises:
        TooFewPointsError: If fewer than 3 points are given.
    """
    points = _as_points_2d(points_2d)
    if len(points) < MIN_CIRCLE_POINTS:
        raise TooFewPointsError(
            "direct_circle", required=MIN_CIRCLE_POINTS, received=len(points)
        )

    center = points.mean(axis=0)
    radius = float(np.mean(np.linalg.norm(points - center, axis=1)))
    cx, cy = center
    params = np.array(
        [1.0, 0.0, 1.0, -2.0 * cx, -2.0 * cy, cx * cx + cy * cy - radius * radius]
    )
    console_logger.debug(
        f"Fitted circle to {len(points)} points: center={center}, radius={radius:.4f}"
    )
    return _normalize_conic(params)


def _as_conic(params: np.ndarray) -> np.ndarray:
    params = np.asarray(params, dtype=float).ravel()
    if len(params) != 6:
        raise WrongParameterCountError(
            f"Conic needs 6 parameters (A, B, C, D, E, F), got {len(params)}"
        )
    return params


def is_circle_conic(
    params: np.ndarray, tolerance: GeometryTolerance = DEFAULT_TOLERANCE
) -> bool:
    """Whether conic coefficients have no cross term and equal square terms."""
    a, b, c = _as_conic(params)[:3]
    return abs(b) <= tolerance.epsilon and abs(a - c) <= tolerance.epsilon


def get_radius(
    params: np.ndarray, tolerance: GeometryTolerance = DEFAULT_TOLERANCE
) -> tuple[np.ndarray, np.ndarray, float]:
    """Recover radii, centre and rotation from conic parameters.

    Args:
        params: Conic coefficients (A, B, C, D, E, F).
        tolerance: Epsilon policy for the circle test and vanishing square
            terms.

    Returns:
        Tuple of (radii, center, tau). For a circle (B == 0, A == C) radii
        holds the radius twice and tau is 0. For an ellipse radii is
        (major, minor) and tau in (-pi/2, pi/2] is the angle of the major axis
        from the x-axis.

    Raises:
        WrongParameterCountError: If `params` does not hold 6 coefficients.
        NoValidEllipseError: If the coefficients describe no real circle or
            ellipse.
    """
    params = _as_conic(params)
    a, b, c, d, e, f = params

    if is_circle_conic(params, tolerance):
        if abs(a) <= tolerance.epsilon:
            raise NoValidEllipseError(
                f"Conic has no quadratic terms (A = {a:.3e}), it is not a circle"
            )
        center = np.array([-d / (2.0 * a), -e / (2.0 * a)])
        squared_radius = float(center @ center - f / a)
        if squared_radius <= 0.0:
            raise NoValidEllipseError(
                f"Conic describes no real circle (r^2 = {squared_radius:.3e})"
            )
        radius = math.sqrt(squared_radius)
        return np.array([radius, radius]), center, 0.0

    m0 = np.array([[f, d / 2.0, e / 2.0], [d / 2.0, a, b / 2.0], [e / 2.0, b / 2.0, c]])
    m = np.array([[a, b / 2.0], [b / 2.0, c]])
    det_m = float(np.linalg.det(m))
    if det_m <= 0.0:
        raise NoValidEllipseError(f"Conic is not an ellipse (4AC - B^2 = {4 * det_m:.3e})")

    # The eigenvalue closer to A belongs to the axis at angle tau0.
    tau0 = math.pi / 4.0 * math.copysign(1.0, b) if a == c else math.atan(b / (a - c)) / 2.0
    eigenvalues = np.linalg.eigvalsh(m)
    if a == c:
        lambda_1 = a + abs(b) / 2.0
        lambda_2 = a - abs(b) / 2.0
    elif abs(eigenvalues[0] - a) <= abs(eigenvalues[1] - a):
        lambda_1, lambda_2 = eigenvalues
    else:
        lambda_2, lambda_1 = eigenvalues

    scale = -float(np.linalg.det(m0)) / det_m
    if scale / lambda_1 <= 0.0 or scale / lambda_2 <= 0.0:
        raise NoValidEllipseError("Conic describes an imaginary ellipse")
    radius_1 = math.sqrt(scale / lambda_1)
    radius_2 = math.sqrt(scale / lambda_2)

    denominator = 4.0 * a * c - b * b
    center = np.array(
        [(b * e - 2.0 * c * d) / denominator, (b * d - 2.0 * a * e) / denominator]
    )

    tau = tau0
    if radius_1 < radius_2:
        radius_1, radius_2 = radius_2, radius_1
        tau += math.pi / 2.0
    if tau > math.pi / 2.0:
        tau -= math.pi
    elif tau <= -math.pi / 2.0:
        tau += math.pi

    return np.array([radius_1, radius_2]), center, tau


@dataclass(frozen=True)
class Circle:
    center: np.ndarray
    """Centre (2,) in plane coordinates."""

    radius: float

    @property
    def area(self) -> float:
        return math.pi * self.radius**2


@dataclass(frozen=True)
class Ellipse:
    center: np.ndarray
    """Centre (2,) in plane coordinates."""

    major_radius: float
    minor_radius: float

    rotation: float
    """Angle of the major axis from the x-axis, in (-pi/2, pi/2]."""

    @property
    def radii(self) -> tuple[float, float]:
        return self.major_radius, self.minor_radius

    @property
    def area(self) -> float:
        return math.pi * self.major_radius * self.minor_radius


def conic_to_shape(
    params: np.ndarray, tolerance: GeometryTolerance = DEFAULT_TOLERANCE
) -> Circle | Ellipse:
    """Convert conic parameters into a `Circle` or an `Ellipse`."""
    radii, center, tau = get_radius(params, tolerance)
    if is_circle_conic(params, tolerance):
        return Circle(center=center, radius=float(radii[0]))
    return Ellipse(
        center=center,
        major_radius=float(radii[0]),
        minor_radius=float(radii[1]),
        rotation=float(tau),
    )
