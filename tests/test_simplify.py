import math
import time
import unittest

from gpx_samples import point

from drift.utils.simplify import METERS_PER_DEGREE_LAT, perpendicular_distance_3d, simplify_3d


def _zigzag(count, amplitude=0.001):
    return [
        point(47.0 + i * 0.0001, 8.0 + (amplitude if i % 2 else 0.0), 400 + (i % 7), seconds=i)
        for i in range(count)
    ]


class PerpendicularDistanceTests(unittest.TestCase):
    def test_point_on_line_is_zero(self):
        start = point(0.0, 0.0)
        end = point(0.0, 1.0)
        self.assertAlmostEqual(perpendicular_distance_3d(point(0.0, 0.5), start, end), 0.0)

    def test_offset_point_at_equator(self):
        start = point(0.0, 0.0)
        end = point(0.0, 0.01)
        distance = perpendicular_distance_3d(point(0.001, 0.005), start, end)
        self.assertAlmostEqual(distance, 0.001 * METERS_PER_DEGREE_LAT, places=6)

    def test_degenerate_segment_uses_point_distance(self):
        anchor = point(0.0, 0.0)
        distance = perpendicular_distance_3d(point(0.0, 0.0, elevation=30), anchor, anchor)
        self.assertAlmostEqual(distance, 30.0)

    def test_elevation_weight_scales_vertical_offset(self):
        start = point(0.0, 0.0, elevation=0)
        end = point(0.0, 0.01, elevation=0)
        raised = point(0.0, 0.005, elevation=10)
        self.assertAlmostEqual(perpendicular_distance_3d(raised, start, end, 1.0), 10.0)
        self.assertAlmostEqual(perpendicular_distance_3d(raised, start, end, 2.0), 20.0)
        self.assertAlmostEqual(perpendicular_distance_3d(raised, start, end, 0.0), 0.0)

    def test_beyond_segment_end_measures_to_endpoint(self):
        start = point(0.0, 0.0)
        end = point(0.0, 0.001)
        beyond = point(0.0, 0.002)
        expected = 0.001 * METERS_PER_DEGREE_LAT
        self.assertAlmostEqual(perpendicular_distance_3d(beyond, start, end), expected, places=6)

    def test_longitude_scaled_by_latitude(self):
        start = point(60.0, 0.0)
        end = point(60.001, 0.0)
        east = point(60.0005, 0.001)
        expected = 0.001 * METERS_PER_DEGREE_LAT * math.cos(math.radians(60.0005))
        self.assertAlmostEqual(perpendicular_distance_3d(east, start, end), expected, places=6)


class Simplify3DTests(unittest.TestCase):
    def test_short_inputs_unchanged(self):
        for points in ([], [point(1.0, 1.0)], [point(1.0, 1.0), point(2.0, 2.0)]):
            self.assertEqual(simplify_3d(points, 0.001), points)

    def test_zero_tolerance_keeps_everything(self):
        points = [point(0.0, i * 0.001) for i in range(10)]
        self.assertEqual(len(simplify_3d(points, 0)), 10)

    def test_collinear_points_collapse_to_endpoints(self):
        points = [point(0.0, i * 0.001) for i in range(10)]
        result = simplify_3d(points, 0.00001)
        self.assertEqual(result, [points[0], points[-1]])

    def test_keeps_significant_corner(self):
        points = [point(0.0, 0.0), point(0.0, 0.001), point(0.0, 0.002), point(0.002, 0.002), point(0.004, 0.002)]
        result = simplify_3d(points, 0.0001)
        self.assertIn(points[2], result)
        self.assertEqual(len(result), 3)

    def test_elevation_spike_kept_with_weight(self):
        points = [point(0.0, i * 0.0001, elevation=100) for i in range(5)]
        points[2] = point(0.0, 0.0002, elevation=150)
        self.assertIn(points[2], simplify_3d(points, 0.0001, elevation_weight=1.0))
        self.assertNotIn(points[2], simplify_3d(points, 0.0001, elevation_weight=0.0))

    def test_endpoints_preserved(self):
        points = _zigzag(101)
        for tolerance in (0.00001, 0.0001, 0.01, 1.0):
            result = simplify_3d(points, tolerance)
            self.assertIs(result[0], points[0])
            self.assertIs(result[-1], points[-1])

    def test_output_is_ordered_subsequence(self):
        points = _zigzag(200)
        result = simplify_3d(points, 0.00005)
        indexes = [points.index(p) for p in result]
        self.assertEqual(indexes, sorted(indexes))

    def test_point_data_preserved(self):
        points = [
            point(0.0, 0.0, seconds=0),
            point(0.01, 0.005, seconds=5, extensions={"heart_rate": 150.0}),
            point(0.0, 0.01, seconds=10),
        ]
        result = simplify_3d(points, 0.0001)
        self.assertEqual(len(result), 3)
        self.assertEqual(result[1]["extensions"], {"heart_rate": 150.0})
        self.assertEqual(result[1]["time"], points[1]["time"])

    def test_large_track_runs_quickly(self):
        points = [
            point(47.0 + 0.01 * math.sin(i / 50.0), 8.0 + i * 0.00001, 500 + 20 * math.sin(i / 200.0))
            for i in range(10000)
        ]
        started = time.perf_counter()
        result = simplify_3d(points, 0.0001)
        elapsed = time.perf_counter() - started
        self.assertLess(len(result), len(points))
        self.assertLess(elapsed, 5.0)


if __name__ == "__main__":
    unittest.main()
