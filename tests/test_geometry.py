import math
import random
import unittest

from tsp_wisdom.errors import InvalidInput
from tsp_wisdom.geometry import Point, average, distance, point_segment_distance, standard_deviation, tour_length


def square():
    return [Point("1", 0, 0), Point("2", 10, 0), Point("3", 10, 10), Point("4", 0, 10)]


class TestPoint(unittest.TestCase):
    def test_value_equality(self):
        a = Point("7", 1.5, 2.0)
        b = Point("7", 1.5, 2.0)
        self.assertIsNot(a, b)
        self.assertEqual(a, b)
        self.assertEqual(len({a, b}), 1)

    def test_immutable(self):
        p = Point("1", 0, 0)
        with self.assertRaises(AttributeError):
            p.x = 3


class TestDistances(unittest.TestCase):
    def test_distance(self):
        self.assertAlmostEqual(distance(Point("a", 0, 0), Point("b", 3, 4)), 5.0)

    def test_tour_length_closed_and_open(self):
        tour = square()
        self.assertAlmostEqual(tour_length(tour, True), 40.0)
        self.assertAlmostEqual(tour_length(tour, False), 30.0)

    def test_tiny_tours(self):
        self.assertEqual(tour_length([], True), 0.0)
        self.assertEqual(tour_length([Point("1", 4, 4)], True), 0.0)

    def test_reversal_and_rotation_invariance(self):
        rng = random.Random(5)
        points = [Point(str(i), rng.uniform(0, 100), rng.uniform(0, 100)) for i in range(25)]
        base = tour_length(points, True)
        self.assertAlmostEqual(tour_length(points[::-1], True), base)
        for shift in (1, 7, 24):
            rotated = points[shift:] + points[:shift]
            self.assertAlmostEqual(tour_length(rotated, True), base)


class TestPointSegmentDistance(unittest.TestCase):
    def test_perpendicular(self):
        res = point_segment_distance(Point("p", 5, 3), Point("a", 0, 0), Point("b", 10, 0))
        self.assertTrue(res.is_perpendicular)
        self.assertAlmostEqual(res.distance, 3.0)
        self.assertIsNone(res.closest_endpoint)

    def test_outside_segment(self):
        res = point_segment_distance(Point("p", 13, 4), Point("a", 0, 0), Point("b", 10, 0))
        self.assertFalse(res.is_perpendicular)
        self.assertEqual(res.closest_endpoint, "b")
        self.assertAlmostEqual(res.distance, 5.0)

    def test_zero_length_segment(self):
        a = Point("a", 1, 1)
        res = point_segment_distance(Point("p", 4, 5), a, a)
        self.assertAlmostEqual(res.distance, 5.0)


class TestStatistics(unittest.TestCase):
    def test_average_and_std(self):
        values = [2, 4, 4, 4, 5, 5, 7, 9]
        self.assertAlmostEqual(average(values), 5.0)
        self.assertAlmostEqual(standard_deviation(values), 2.0)

    def test_empty_lists_rejected(self):
        with self.assertRaises(InvalidInput):
            average([])
        with self.assertRaises(InvalidInput):
            standard_deviation([])

    def test_single_value(self):
        self.assertEqual(standard_deviation([3.0]), 0.0)
        self.assertTrue(math.isclose(average([3.0]), 3.0))


if __name__ == "__main__":
    unittest.main()
