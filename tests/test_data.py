import tempfile
import unittest
from pathlib import Path

from tsp_wisdom import cli
from tsp_wisdom.data import load_points, parse_points
from tsp_wisdom.errors import InvalidInput
from tsp_wisdom.geometry import Point
from tsp_wisdom.operators import is_permutation


HEADER = "\n".join(
    [
        "NAME: concorde7",
        "TYPE: TSP",
        "COMMENT: Generated by CCutil_writetsplib",
        "COMMENT: Write called for by Concorde GUI",
        "DIMENSION: 7",
        "EDGE_WEIGHT_TYPE: EUC_2D",
        "NODE_COORD_SECTION",
    ]
)

CITIES = "\n".join(
    [
        "1 87.951292 2.658162",
        "2 33.466597 66.682943",
        "3 91.778314 53.807184",
        "4 20.526749 47.633290",
        "5 9.006012 81.185339",
        "6 20.032350 2.761925",
        "7 77.181310 31.922361",
    ]
)

TSPLIB = """NAME: square
TYPE: TSP
DIMENSION: 4
EDGE_WEIGHT_TYPE: EUC_2D
NODE_COORD_SECTION
1 0 0
2 10 0
3 10 10
4 0 10
EOF
"""


class TestParsePoints(unittest.TestCase):
    def test_skips_header(self):
        points = parse_points(HEADER + "\n" + CITIES + "\n")
        self.assertEqual(len(points), 7)
        self.assertEqual(points[0], Point("1", 87.951292, 2.658162))
        self.assertEqual(points[-1].name, "7")

    def test_custom_header_and_eof(self):
        points = parse_points("3 1 2\n\n4 5 6\nEOF\n", header_lines=0)
        self.assertEqual([p.name for p in points], ["3", "4"])

    def test_duplicate_names(self):
        with self.assertRaises(InvalidInput):
            parse_points("1 0 0\n1 2 2\n", header_lines=0)

    def test_malformed_lines(self):
        with self.assertRaises(InvalidInput):
            parse_points("1 0\n", header_lines=0)
        with self.assertRaises(InvalidInput):
            parse_points("1 zero 0\n", header_lines=0)


class TestLoadPoints(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_plain_file(self):
        path = self.root / "Random7.txt"
        path.write_text(HEADER + "\n" + CITIES + "\n")
        self.assertEqual(len(load_points(path)), 7)

    def test_tsplib_file(self):
        path = self.root / "square.tsp"
        path.write_text(TSPLIB)
        points = load_points(path)
        self.assertEqual(
            sorted(points, key=lambda p: int(p.name)),
            [Point("1", 0, 0), Point("2", 10, 0), Point("3", 10, 10), Point("4", 0, 10)],
        )


class TestCli(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "Random7.txt"
        self.path.write_text(HEADER + "\n" + CITIES + "\n")
        self.points = parse_points(CITIES, header_lines=0)

    def tearDown(self):
        self.tmp.cleanup()

    def test_optimize(self):
        final = cli.main(["optimize", str(self.path), "--generations", "10", "--population", "10"])
        self.assertEqual(final.generation, 10)
        self.assertTrue(is_permutation(final.best_tour, self.points))

    def test_crowd(self):
        result = cli.main(
            ["crowd", str(self.path), "--experts", "3", "--workers", "2", "--generations", "10", "--population", "10"]
        )
        self.assertTrue(is_permutation(result.tour, self.points))


if __name__ == "__main__":
    unittest.main()
