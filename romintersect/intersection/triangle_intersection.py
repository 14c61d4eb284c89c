"""Triangle-triangle intersection that returns the intersection geometry.

Implements the plane-separation test of Moller ("A Fast Triangle-Triangle
Intersection Test", 1997), extended to emit the intersection segment:

1. Signed distances of the affordance vertices to the ROM plane. No sign change
   means the triangles cannot touch.
2. The symmetric test against the affordance plane.
3. The planes meet in a line L = p + t D with D = n_aff x n_rom.
4. Each triangle crosses L over an interval [t0, t1], found by interpolating
   along the two edges that leave its lone vertex (the vertex alone on its side
   of the other plane).
5. The overlap of both intervals is the intersection segment.

Coplanar pairs are intersected in 2D with shapely polygons on the shared plane
and return the vertices of the overlap polygon.
"""

import logging

import numpy as np

from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from romintersect.utils.geometry_utils import (
    DEFAULT_TOLERANCE,
    GeometryTolerance,
    plane_basis,
    triangle_plane,
)

console_logger = logging.getLogger(__name__)

NO_INTERSECTION = np.empty((0, 3))
"""Shape (0, 3) result returned when the triangles do not intersect."""


def _all_same_strict_sign(distances: np.ndarray) -> bool:
    return bool(np.all(distances > 0.0) or np.all(distances < 0.0))


def _lone_vertex_order(distances: np.ndarray) -> tuple[int, int, int]:
    """Order vertex indices as (other, lone, other).

    The lone vertex is the one alone on its side of the plane. Exact zeros
    (vertices lying on the plane) are handled explicitly so the two
    interpolation denominators `d_other - d_lone` are never zero.

    Args:
        distances: Snapped signed distances of the three vertices; not all zero
            and not all of the same strict sign.

    Returns:
        Vertex indices with the lone vertex in the middle slot.
    """
    d0, d1, d2 = distances
    if d0 * d1 > 0.0:
        lone = 2
    elif d0 * d2 > 0.0:
        lone = 1
    elif d1 * d2 > 0.0 or d0 != 0.0:
        lone = 0
    elif d1 != 0.0:
        lone = 1
    else:
        lone = 2
    others = [i for i in range(3) if i != lone]
    return others[0], lone, others[1]


def _point_on_plane_line(
    normal_rom: np.ndarray,
    offset_rom: float,
    normal_aff: np.ndarray,
    offset_aff: float,
    direction: np.ndarray,
) -> np.ndarray:
    """Solve for a point on the intersection line of two planes.

    The coordinate along the dominant axis k of the line direction is fixed to
    zero and the remaining 2x2 system is solved. Its determinant equals
    -D[k] * |n_aff x n_rom|, the largest available pivot, so no other
    near-zero division can occur.
    """
    k = int(np.argmax(np.abs(direction)))
    i, j = (k + 1) % 3, (k + 2) % 3
    det = normal_rom[i] * normal_aff[j] - normal_rom[j] * normal_aff[i]

    point = np.zeros(3)
    point[i] = (offset_rom * normal_aff[j] - normal_rom[j] * offset_aff) / det
    point[j] = (normal_rom[i] * offset_aff - offset_rom * normal_aff[i]) / det
    return point


def _interval_on_line(
    vertices: np.ndarray,
    distances: np.ndarray,
    line_point: np.ndarray,
    direction: np.ndarray,
) -> tuple[float, float]:
    """Parameter interval [t0, t1] where a triangle crosses the line p + t D."""
    first, lone, second = _lone_vertex_order(distances)
    projections = (vertices - line_point) @ direction

    crossings = []
    for other in (first, second):
        fraction = distances[other] / (distances[other] - distances[lone])
        crossings.append(
            projections[other] + (projections[lone] - projections[other]) * fraction
        )
    return min(crossings), max(crossings)


def _geometry_coordinates(geometry: BaseGeometry) -> list[tuple[float, float]]:
    """Flatten a shapely intersection result into its vertex coordinates."""
    if geometry.is_empty:
        return []
    if geometry.geom_type == "Polygon":
        # Drop the closing vertex of the exterior ring.
        return list(geometry.exterior.coords)[:-1]
    if geometry.geom_type in ("Point", "LineString"):
        return list(geometry.coords)
    coordinates = []
    for part in getattr(geometry, "geoms", []):
        coordinates.extend(_geometry_coordinates(part))
    return coordinates


def coplanar_triangle_intersection(
    rom: np.ndarray, aff: np.ndarray, normal: np.ndarray
) -> np.ndarray:
    """Intersect two triangles lying in the same plane.

    Both triangles are expressed in an orthonormal basis of the plane through
    rom[0] with the given normal, clipped against each other as 2D polygons,
    and the result is mapped back to 3D.

    Args:
        rom: ROM triangle (3, 3).
        aff: Affordance triangle (3, 3), coplanar with `rom`.
        normal: Common plane normal (3,).

    Returns:
        Array (k, 3): the overlap polygon vertices, the shared edge end points,
        a single touching point, or shape (0, 3) when disjoint.
    """
    u_axis, v_axis = plane_basis(normal)
    basis = np.stack([u_axis, v_axis])
    origin = rom[0]

    rom_polygon = Polygon((rom - origin) @ basis.T)
    aff_polygon = Polygon((aff - origin) @ basis.T)
    overlap = rom_polygon.intersection(aff_polygon)

    coordinates = _geometry_coordinates(overlap)
    if not coordinates:
        return NO_INTERSECTION.copy()

    console_logger.debug(
        f"Coplanar triangles overlap as {overlap.geom_type} "
        f"with {len(coordinates)} vertices"
    )
    return origin + np.asarray(coordinates, dtype=float) @ basis


def triangle_intersection(
    rom: np.ndarray,
    aff: np.ndarray,
    tolerance: GeometryTolerance = DEFAULT_TOLERANCE,
) -> np.ndarray:
    """Compute the intersection of a ROM triangle and an affordance triangle.

    Args:
        rom: ROM triangle, shape (3, 3), world frame.
        aff: Affordance triangle, shape (3, 3), world frame.
        tolerance: Epsilon policy. Signed distances within epsilon of a plane
            are snapped to exactly zero before the strict sign tests.

    Returns:
        Array of shape (0, 3) when the triangles do not intersect, (2, 3) with
        the segment end points (equal when the triangles only touch in a
        point), or (k, 3) with the overlap polygon of coplanar triangles.

    Raises:
        DegenerateGeometryError: If either triangle has zero area.
    """
    rom = np.asarray(rom, dtype=float)
    aff = np.asarray(aff, dtype=float)

    normal_rom, offset_rom = triangle_plane(rom, tolerance)
    normal_aff, offset_aff = triangle_plane(aff, tolerance)

    # Affordance vertices against the ROM plane.
    aff_to_rom = tolerance.snap(aff @ normal_rom - offset_rom)
    if _all_same_strict_sign(aff_to_rom):
        return NO_INTERSECTION.copy()

    # ROM vertices against the affordance plane.
    rom_to_aff = tolerance.snap(rom @ normal_aff - offset_aff)
    if _all_same_strict_sign(rom_to_aff):
        return NO_INTERSECTION.copy()

    if not np.any(aff_to_rom) or not np.any(rom_to_aff):
        return coplanar_triangle_intersection(rom, aff, normal_rom)

    direction = np.cross(normal_aff, normal_rom)
    direction_length = float(np.linalg.norm(direction))
    if direction_length <= tolerance.epsilon:
        # Parallel planes with mixed signs only happen within epsilon of each other.
        return coplanar_triangle_intersection(rom, aff, normal_rom)
    direction /= direction_length

    line_point = _point_on_plane_line(
        normal_rom=normal_rom,
        offset_rom=offset_rom,
        normal_aff=normal_aff,
        offset_aff=offset_aff,
        direction=direction,
    )

    rom_start, rom_end = _interval_on_line(rom, rom_to_aff, line_point, direction)
    aff_start, aff_end = _interval_on_line(aff, aff_to_rom, line_point, direction)

    start = max(rom_start, aff_start)
    end = min(rom_end, aff_end)
    if start > end + tolerance.epsilon:
        return NO_INTERSECTION.copy()
    if start > end:
        # Touching intervals: collapse to a single point.
        start = end = 0.5 * (start + end)

    return np.stack([line_point + start * direction, line_point + end * direction])
