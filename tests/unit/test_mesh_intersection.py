import unittest

import numpy as np

from omegaconf import OmegaConf
from shapely.geometry import Polygon

from romintersect.fitting.shape_fit import fit_boundary_shape
from romintersect.intersection.mesh_intersection import (
    IntersectionConfig,
    compute_intersection_region,
    compute_ordered_boundary,
    resample_boundary,
)
from romintersect.intersection.rigid_mesh import CollisionResult
from tests.unit.mesh_fixtures import (
    HAS_FCL,
    SyntheticRigidMesh,
    always_colliding,
    box_triangles,
    disk_fan,
    never_colliding,
    square_plate,
)


class TestComputeIntersectionRegion(unittest.TestCase):
    def setUp(self):
        self.rom = SyntheticRigidMesh(box_triangles())

    def test_plate_crossing_cube_corner(self):
        plate = SyntheticRigidMesh(square_plate(0.5, 1.5, 0.5))

        region = compute_intersection_region(
            self.rom, plate, collision_checker=always_colliding
        )

        self.assertFalse(region.is_empty)
        self.assertTrue(region.in_collision)
        self.assertEqual(region.num_interior_vertices, 1)
        np.testing.assert_allclose(region.boundary[:, 2], 0.5, atol=1e-9)
        self.assertAlmostEqual(Polygon(region.boundary[:, :2]).area, 0.25, places=9)
        np.testing.assert_allclose(region.boundary.min(axis=0), [0.5, 0.5, 0.5], atol=1e-9)
        np.testing.assert_allclose(region.boundary.max(axis=0), [1.0, 1.0, 0.5], atol=1e-9)

    def test_plate_without_aabb_prefilter(self):
        plate = SyntheticRigidMesh(square_plate(0.5, 1.5, 0.5))

        region = compute_intersection_region(
            self.rom,
            plate,
            config=IntersectionConfig(aabb_prefilter=False),
            collision_checker=always_colliding,
        )

        self.assertAlmostEqual(Polygon(region.boundary[:, :2]).area, 0.25, places=9)

    def test_disk_inside_cube_fits_circle(self):
        disk = SyntheticRigidMesh(disk_fan([0.5, 0.5, 0.5], 0.3, num_segments=24))

        # The surfaces never touch, the interior vertices carry the region.
        region = compute_intersection_region(
            self.rom, disk, collision_checker=never_colliding
        )

        self.assertEqual(region.num_interior_vertices, 25)
        self.assertEqual(len(region.boundary), 24)
        np.testing.assert_allclose(
            np.linalg.norm(region.boundary - [0.5, 0.5, 0.5], axis=1), 0.3, atol=1e-12
        )

        fit = fit_boundary_shape(region.boundary, shape="circle")
        self.assertAlmostEqual(fit.shape.radius, 0.3, places=9)
        np.testing.assert_allclose(fit.center_world, [0.5, 0.5, 0.5], atol=1e-9)

    def test_posed_meshes_are_moved_to_world(self):
        # Same plate as above, expressed around the origin and translated.
        rom = SyntheticRigidMesh(
            box_triangles([-0.5, -0.5, -0.5], [0.5, 0.5, 0.5]),
            translation_vector=np.array([0.5, 0.5, 0.5]),
        )
        plate = SyntheticRigidMesh(
            square_plate(-0.5, 0.5, 0.0), translation_vector=np.array([1.0, 1.0, 0.5])
        )

        region = compute_intersection_region(
            rom, plate, collision_checker=always_colliding
        )

        self.assertAlmostEqual(Polygon(region.boundary[:, :2]).area, 0.25, places=9)
        np.testing.assert_allclose(region.boundary[:, 2], 0.5, atol=1e-9)

    def test_far_plate_gives_empty_region(self):
        plate = SyntheticRigidMesh(square_plate(5.0, 6.0, 0.5))

        with self.assertLogs("romintersect.intersection.mesh_intersection", "INFO"):
            region = compute_intersection_region(
                self.rom, plate, collision_checker=never_colliding
            )

        self.assertTrue(region.is_empty)
        self.assertEqual(region.boundary.shape, (0, 3))

    def test_false_positive_broad_phase_gives_empty_region(self):
        plate = SyntheticRigidMesh(square_plate(5.0, 6.0, 0.5))

        region = compute_intersection_region(
            self.rom, plate, collision_checker=always_colliding
        )

        self.assertTrue(region.is_empty)

    def test_contact_points_are_reported(self):
        plate = SyntheticRigidMesh(square_plate(0.5, 1.5, 0.5))
        contacts = np.array([[1.0, 0.75, 0.5]])

        region = compute_intersection_region(
            self.rom,
            plate,
            collision_checker=lambda rom, aff: CollisionResult(True, contacts),
        )

        np.testing.assert_allclose(region.contact_points, contacts)

    def test_degenerate_affordance_triangles_are_dropped(self):
        triangles = np.concatenate(
            [
                square_plate(0.5, 1.5, 0.5),
                [[[0.6, 0.6, 0.5], [0.7, 0.7, 0.5], [0.8, 0.8, 0.5]]],
            ]
        )

        with self.assertLogs(
            "romintersect.intersection.mesh_intersection", "WARNING"
        ) as logs:
            region = compute_intersection_region(
                self.rom,
                SyntheticRigidMesh(triangles),
                collision_checker=always_colliding,
            )

        self.assertIn("zero-area", "\n".join(logs.output))
        self.assertAlmostEqual(Polygon(region.boundary[:, :2]).area, 0.25, places=9)

    @unittest.skipUnless(HAS_FCL, "python-fcl is not installed")
    def test_default_broad_phase(self):
        plate = SyntheticRigidMesh(square_plate(0.5, 1.5, 0.5))

        region = compute_intersection_region(self.rom, plate)

        self.assertTrue(region.in_collision)
        self.assertAlmostEqual(Polygon(region.boundary[:, :2]).area, 0.25, places=9)


class TestOrderedBoundary(unittest.TestCase):
    def test_hull_order_drops_interior_points(self):
        corners = np.array(
            [[0.0, 0.0, 1.0], [1.0, 0.0, 1.0], [1.0, 1.0, 1.0], [0.0, 1.0, 1.0]]
        )
        interior = np.array([[0.5, 0.5, 1.0], [0.2, 0.7, 1.0]])
        points = np.concatenate([corners, interior, corners[:2]])
        np.random.shuffle(points)

        boundary = compute_ordered_boundary(points)

        self.assertEqual(len(boundary), 4)
        self.assertAlmostEqual(Polygon(boundary[:, :2]).area, 1.0)
        self.assertTrue(Polygon(boundary[:, :2]).is_valid)

    def test_collinear_points_follow_the_line(self):
        points = np.array([[2.0, 2.0, 0.0], [0.0, 0.0, 0.0], [1.0, 1.0, 0.0]])

        boundary = compute_ordered_boundary(points)

        np.testing.assert_allclose(np.abs(np.diff(boundary[:, 0])), 1.0)

    def test_two_points(self):
        points = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
        self.assertEqual(len(compute_ordered_boundary(points)), 2)


class TestResampleBoundary(unittest.TestCase):
    def test_subdivides_long_edges(self):
        rectangle = np.array(
            [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 0.2, 0.0], [0.0, 0.2, 0.0]]
        )

        resampled = resample_boundary(rectangle)

        # Resample length is the shortest edge, 0.2: 5 + 1 + 5 + 1 pieces.
        self.assertEqual(len(resampled), 12)
        np.testing.assert_allclose(resampled[0], rectangle[0])
        closed = np.concatenate([resampled, resampled[:1]])
        self.assertLessEqual(np.linalg.norm(np.diff(closed, axis=0), axis=1).max(), 0.2 + 1e-12)

    def test_noise_edges_do_not_set_length(self):
        sliver = np.array(
            [[0.0, 0.0, 0.0], [0.5, 0.0, 0.0], [0.5, 0.005, 0.0], [0.0, 0.005, 0.0]]
        )
        self.assertEqual(len(resample_boundary(sliver)), 4)

    def test_resample_length_is_floored(self):
        rectangle = np.array(
            [[0.0, 0.0, 0.0], [0.5, 0.0, 0.0], [0.5, 0.05, 0.0], [0.0, 0.05, 0.0]]
        )

        # Shortest edge 0.05 is raised to the 0.1 floor: 5 + 1 + 5 + 1 pieces.
        self.assertEqual(len(resample_boundary(rectangle)), 12)

        fine = resample_boundary(rectangle, min_resample_length=0.01)
        self.assertEqual(len(fine), 22)

    def test_open_polyline_is_not_walked_back(self):
        segment = np.array([[0.0, 0.0, 0.0], [0.25, 0.0, 0.0], [1.0, 0.0, 0.0]])

        resampled = resample_boundary(segment, closed=False)

        np.testing.assert_allclose(resampled[:, 0], [0.0, 0.25, 0.5, 0.75, 1.0])
        np.testing.assert_allclose(resampled[:, 1:], 0.0)

    def test_two_point_segment_stays_two_points(self):
        segment = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])

        resampled = resample_boundary(segment, closed=False)

        np.testing.assert_allclose(resampled, segment)


class TestIntersectionConfig(unittest.TestCase):
    def test_from_config(self):
        cfg = OmegaConf.create(
            {
                "aabb_prefilter": False,
                "show_progress": True,
                "resampling": {"noise_edge_length": 0.02, "min_resample_length": 0.05},
                "tolerance": {"epsilon": 1e-7},
            }
        )

        config = IntersectionConfig.from_config(cfg)

        self.assertFalse(config.aabb_prefilter)
        self.assertTrue(config.show_progress)
        self.assertEqual(config.noise_edge_length, 0.02)
        self.assertEqual(config.min_resample_length, 0.05)
        self.assertEqual(config.tolerance.epsilon, 1e-7)

    def test_invalid_values_raise(self):
        with self.assertRaises(ValueError):
            IntersectionConfig(min_resample_length=0.0)
        with self.assertRaises(ValueError):
            IntersectionConfig(noise_edge_length=-1.0)


if __name__ == "__main__":
    unittest.main()
