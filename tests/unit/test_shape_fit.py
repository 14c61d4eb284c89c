import unittest

import numpy as np

from romintersect.fitting.conic_fit import Circle, Ellipse
from romintersect.fitting.shape_fit import fit_boundary_shape


def tilted_ellipse_3d(center, major, minor, num_points=36) -> tuple[np.ndarray, np.ndarray]:
    """Ellipse in the plane spanned by (1, 0, 0) and (0, 0.6, 0.8).

    The major axis is turned away from both spanning vectors so the fitted conic
    has a non-zero cross term.
    """
    angles = np.linspace(0.0, 2.0 * np.pi, num_points, endpoint=False)
    c, s = np.cos(0.5), np.sin(0.5)
    u_axis = np.array([c, 0.6 * s, 0.8 * s])
    v_axis = np.array([-s, 0.6 * c, 0.8 * c])
    points = (
        np.asarray(center)
        + np.outer(major * np.cos(angles), u_axis)
        + np.outer(minor * np.sin(angles), v_axis)
    )
    return points, np.cross(u_axis, v_axis)


class TestFitBoundaryShape(unittest.TestCase):
    def test_circle_in_tilted_plane(self):
        points, normal = tilted_ellipse_3d([1.0, 2.0, 3.0], 0.4, 0.4)

        fit = fit_boundary_shape(points, shape="circle")

        self.assertIsInstance(fit.shape, Circle)
        self.assertAlmostEqual(fit.shape.radius, 0.4, places=9)
        np.testing.assert_allclose(fit.center_world, [1.0, 2.0, 3.0], atol=1e-9)
        self.assertAlmostEqual(abs(float(fit.plane.normal @ normal)), 1.0, places=9)

    def test_ellipse_in_tilted_plane(self):
        points, _ = tilted_ellipse_3d([0.0, -1.0, 0.5], 0.8, 0.3)

        fit = fit_boundary_shape(points, shape="ellipse")

        self.assertIsInstance(fit.shape, Ellipse)
        self.assertAlmostEqual(fit.shape.major_radius, 0.8, places=6)
        self.assertAlmostEqual(fit.shape.minor_radius, 0.3, places=6)
        np.testing.assert_allclose(fit.center_world, [0.0, -1.0, 0.5], atol=1e-6)

    def test_auto_falls_back_to_circle_for_few_points(self):
        square = np.array(
            [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]
        )

        with self.assertLogs("romintersect.fitting.shape_fit", level="WARNING"):
            fit = fit_boundary_shape(square, shape="auto")

        self.assertEqual(fit.kind, "circle")
        np.testing.assert_allclose(fit.center_world, [0.5, 0.5, 0.0], atol=1e-12)
        self.assertAlmostEqual(fit.shape.radius, np.sqrt(0.5))

    def test_auto_prefers_ellipse(self):
        points, _ = tilted_ellipse_3d([0.0, 0.0, 0.0], 0.8, 0.3)
        self.assertEqual(fit_boundary_shape(points).kind, "ellipse")

    def test_to_dict_is_json_ready(self):
        points, _ = tilted_ellipse_3d([1.0, 2.0, 3.0], 0.4, 0.4)

        summary = fit_boundary_shape(points, shape="circle").to_dict()

        self.assertEqual(summary["kind"], "circle")
        self.assertEqual(len(summary["params"]), 6)
        self.assertAlmostEqual(summary["radius"], 0.4, places=9)

    def test_unknown_shape_raises(self):
        points, _ = tilted_ellipse_3d([0.0, 0.0, 0.0], 0.8, 0.3)
        with self.assertRaises(ValueError):
            fit_boundary_shape(points, shape="square")


if __name__ == "__main__":
    unittest.main()
