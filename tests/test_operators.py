import random
import unittest

from tsp_wisdom.errors import DegenerateSelection
from tsp_wisdom.geometry import Point
from tsp_wisdom.operators import (
    FitnessEntry,
    double_slice_fill,
    inverse_fitness,
    is_permutation,
    nearest_neighbor_merge,
    percentile_cubed_fitness,
    prefix_fill,
    roulette_select,
    swap_mutation,
    truncation_pools,
    uniform_pair,
)


def random_points(n, seed=0):
    rng = random.Random(seed)
    return [Point(str(i), rng.uniform(0, 100), rng.uniform(0, 100)) for i in range(n)]


class TestCrossover(unittest.TestCase):
    def setUp(self):
        self.rng = random.Random(42)
        self.points = random_points(12)

    def parents(self):
        return self.rng.sample(self.points, len(self.points)), self.rng.sample(self.points, len(self.points))

    def test_prefix_fill_every_cut(self):
        a, b = self.parents()
        for cut in range(len(a) + 1):
            child_a, child_b = prefix_fill(a, b, self.rng, cut=cut)
            self.assertTrue(is_permutation(child_a, self.points))
            self.assertTrue(is_permutation(child_b, self.points))
            self.assertEqual(child_a[:cut], a[:cut])
            self.assertEqual(child_b[:cut], b[:cut])

    def test_prefix_fill_keeps_other_parent_order(self):
        a = self.points
        b = self.points[::-1]
        child_a, _ = prefix_fill(a, b, self.rng, cut=3)
        self.assertEqual(child_a, a[:3] + [p for p in b if p not in a[:3]])

    def test_nearest_neighbor_merge(self):
        for _ in range(50):
            a, b = self.parents()
            (child,) = nearest_neighbor_merge(a, b, self.rng)
            self.assertEqual(child[0], a[0])
            self.assertTrue(is_permutation(child, self.points))

    def test_nearest_neighbor_merge_prefers_closer(self):
        origin = Point("o", 0, 0)
        near = Point("n", 1, 0)
        far = Point("f", 50, 0)
        (child,) = nearest_neighbor_merge([origin, far, near], [near, origin, far])
        self.assertEqual(child, [origin, near, far])

    def test_double_slice_every_cut_pair(self):
        a, b = self.parents()
        n = len(a)
        for i in range(n + 1):
            for j in range(n + 1):
                for child in double_slice_fill(a, b, self.rng, cuts=(i, j)):
                    self.assertTrue(is_permutation(child, self.points))

    def test_double_slice_layout(self):
        a = self.points[:6]
        b = a[::-1]
        child_a, _ = double_slice_fill(a, b, self.rng, cuts=(4, 2))
        core = a[2:4]
        missing = [p for p in b if p not in core]
        front = [p for p in missing if b.index(p) < 2]
        back = [p for p in missing if b.index(p) >= 2]
        self.assertEqual(child_a, front + core + back)

    def test_random_cuts_always_valid(self):
        for _ in range(200):
            a, b = self.parents()
            for fn in (prefix_fill, double_slice_fill):
                for child in fn(a, b, self.rng):
                    self.assertTrue(is_permutation(child, self.points))


class TestMutation(unittest.TestCase):
    def test_zero_rate_is_identity(self):
        rng = random.Random(1)
        tour = random_points(10)
        for _ in range(100):
            out = swap_mutation(tour, 0.0, rng)
            self.assertEqual(out, tour)
            self.assertIsNot(out, tour)

    def test_swap_keeps_points(self):
        rng = random.Random(2)
        tour = random_points(10)
        for _ in range(100):
            out = swap_mutation(tour, 1.0, rng)
            self.assertTrue(is_permutation(out, tour))
            self.assertLessEqual(sum(1 for x, y in zip(out, tour) if x != y), 2)


class TestFitness(unittest.TestCase):
    def test_percentile_cubed_extremes(self):
        entries = percentile_cubed_fitness([10.0, 20.0, 15.0])
        self.assertEqual([e.index for e in entries], [0, 1, 2])
        self.assertAlmostEqual(entries[0].fitness, 100.0 ** 3)
        self.assertAlmostEqual(entries[1].fitness, 0.0)
        self.assertAlmostEqual(entries[2].fitness, 50.0 ** 3)

    def test_percentile_cubed_equal_lengths(self):
        entries = percentile_cubed_fitness([7.0, 7.0])
        self.assertTrue(all(e.fitness == 100.0 ** 3 for e in entries))

    def test_inverse(self):
        entries = inverse_fitness([2.0, 4.0, 0.0])
        self.assertAlmostEqual(entries[0].fitness, 0.5)
        self.assertAlmostEqual(entries[1].fitness, 0.25)
        self.assertGreater(entries[2].fitness, 1e9)


class TestSelection(unittest.TestCase):
    def test_never_picks_zero_weight(self):
        rng = random.Random(3)
        entries = [FitnessEntry(0, 0.0), FitnessEntry(1, 5.0), FitnessEntry(2, 0.0), FitnessEntry(3, 1.0)]
        for _ in range(2000):
            a, b = roulette_select(entries, rng)
            self.assertIn(a, (1, 3))
            self.assertIn(b, (1, 3))

    def test_roughly_proportional(self):
        rng = random.Random(4)
        entries = [FitnessEntry(0, 1.0), FitnessEntry(1, 3.0)]
        counts = [0, 0]
        for _ in range(4000):
            a, _ = roulette_select(entries, rng)
            counts[a] += 1
        self.assertGreater(counts[1], counts[0] * 2)

    def test_degenerate_weights(self):
        rng = random.Random(5)
        with self.assertRaises(DegenerateSelection):
            roulette_select([FitnessEntry(0, 0.0), FitnessEntry(1, 0.0)], rng)
        with self.assertRaises(DegenerateSelection):
            roulette_select([], rng)

    def test_truncation_pools(self):
        entries = [FitnessEntry(i, float(f)) for i, f in enumerate([1, 9, 3, 7, 5, 2, 8, 4, 6, 0])]
        pool, survivors = truncation_pools(entries, mating_fraction=0.5, elite_fraction=0.4)
        self.assertEqual(pool, [1, 6, 3, 8, 4])
        self.assertEqual(survivors, [1, 6])

    def test_truncation_keeps_at_least_one(self):
        entries = [FitnessEntry(0, 1.0), FitnessEntry(1, 2.0)]
        pool, survivors = truncation_pools(entries, mating_fraction=0.1, elite_fraction=0.1)
        self.assertEqual(pool, [1])
        self.assertEqual(survivors, [1])
        self.assertEqual(uniform_pair(pool, random.Random(0)), (1, 1))

    def test_uniform_pair_draws_from_pool(self):
        rng = random.Random(6)
        for _ in range(100):
            a, b = uniform_pair([4, 5, 6], rng)
            self.assertIn(a, (4, 5, 6))
            self.assertIn(b, (4, 5, 6))
            self.assertNotEqual(a, b)


if __name__ == "__main__":
    unittest.main()
