import logging
from pathlib import Path
from typing import List

import tsplib95

from .errors import InvalidInput
from .geometry import Point


logger = logging.getLogger(__name__)

# Plain coordinate files carry a fixed seven-line header before the cities.
HEADER_LINES = 7


def _check_unique(points: List[Point]) -> List[Point]:
    seen = set()
    for p in points:
        if p.name in seen:
            raise InvalidInput(f"duplicate point name {p.name!r}")
        seen.add(p.name)
    return points


def parse_points(text: str, header_lines: int = HEADER_LINES) -> List[Point]:
    """Parse ``name x y`` lines following a fixed-size header.

    Blank lines and an ``EOF`` marker are skipped.
    """
    points = []
    for lineno, line in enumerate(text.splitlines()):
        if lineno < header_lines:
            continue
        parts = line.split()
        if not parts or parts[0].upper() == "EOF":
            continue
        if len(parts) < 3:
            raise InvalidInput(f"line {lineno + 1}: expected 'name x y', got {line!r}")
        try:
            points.append(Point(parts[0], float(parts[1]), float(parts[2])))
        except ValueError as exc:
            raise InvalidInput(f"line {lineno + 1}: {exc}") from exc
    return _check_unique(points)


def load_tsplib_points(path: Path) -> List[Point]:
    problem = tsplib95.load(path)
    coords = problem.node_coords or problem.display_data
    if not coords:
        raise InvalidInput(f"{path} has no node coordinates")
    points = [Point(str(node), float(xy[0]), float(xy[1])) for node, xy in coords.items()]
    logger.info("loaded %d points from %s (%s)", len(points), path, problem.name)
    return _check_unique(points)


def load_points(path, header_lines: int = HEADER_LINES) -> List[Point]:
    path = Path(path)
    if path.suffix.lower() == ".tsp":
        return load_tsplib_points(path)
    points = parse_points(path.read_text(), header_lines=header_lines)
    logger.info("loaded %d points from %s", len(points), path)
    return points
