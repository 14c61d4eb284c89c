import unittest

import numpy as np

from romintersect.errors import TooFewPointsError
from romintersect.fitting.plane_fit import (
    fit_plane,
    from_plane_coordinates,
    project_to_plane,
    to_plane_coordinates,
)


class TestPlaneFit(unittest.TestCase):
    def setUp(self):
        # Points on z = 0.3 x - 0.2 y + 1.
        xy = np.random.uniform(-1.0, 1.0, size=(50, 2))
        z = 0.3 * xy[:, 0] - 0.2 * xy[:, 1] + 1.0
        self.points = np.column_stack([xy, z])
        expected = np.array([-0.3, 0.2, 1.0])
        self.expected_normal = expected / np.linalg.norm(expected)

    def test_recovers_plane_normal_and_centroid(self):
        plane = fit_plane(self.points)

        np.testing.assert_allclose(plane.normal, self.expected_normal, atol=1e-9)
        np.testing.assert_allclose(plane.centroid, self.points.mean(axis=0))
        np.testing.assert_allclose(self.points @ plane.normal, plane.offset, atol=1e-9)

    def test_normal_sign_is_deterministic(self):
        flipped = fit_plane(self.points[::-1])
        plane = fit_plane(self.points)

        np.testing.assert_allclose(flipped.normal, plane.normal, atol=1e-9)
        self.assertGreater(plane.normal[np.argmax(np.abs(plane.normal))], 0.0)

    def test_too_few_points_raise(self):
        with self.assertRaises(TooFewPointsError) as ctx:
            fit_plane(self.points[:2])
        self.assertEqual(ctx.exception.required, 3)
        self.assertEqual(ctx.exception.received, 2)

    def test_project_to_plane_removes_normal_offset(self):
        plane = fit_plane(self.points)
        lifted = self.points + 0.25 * plane.normal

        projected = project_to_plane(lifted, plane)

        np.testing.assert_allclose(projected, self.points, atol=1e-9)

    def test_plane_coordinates_round_trip(self):
        plane = fit_plane(self.points)

        points_2d = to_plane_coordinates(self.points, plane)
        restored = from_plane_coordinates(points_2d, plane)

        self.assertEqual(points_2d.shape, (50, 2))
        np.testing.assert_allclose(restored, self.points, atol=1e-9)

    def test_plane_basis_is_right_handed(self):
        plane = fit_plane(self.points)
        u_axis, v_axis = plane.basis()

        np.testing.assert_allclose(np.cross(u_axis, v_axis), plane.normal, atol=1e-12)
        self.assertAlmostEqual(float(u_axis @ plane.normal), 0.0)


if __name__ == "__main__":
    unittest.main()
