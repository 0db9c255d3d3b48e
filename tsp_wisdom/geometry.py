import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .errors import InvalidInput


@dataclass(frozen=True)
class Point:
    name: str
    x: float
    y: float

    @property
    def key(self) -> str:
        return self.name

    def __str__(self) -> str:
        return f"{self.name}({self.x:g}, {self.y:g})"


@dataclass(frozen=True)
class SegmentDistance:
    distance: float
    is_perpendicular: bool
    closest_endpoint: Optional[str] = None


def distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def tour_length(tour: Sequence[Point], close_loop: bool = True) -> float:
    n = len(tour)
    if n < 2:
        return 0.0
    dist = 0.0
    for i in range(n - 1):
        dist += distance(tour[i], tour[i + 1])
    if close_loop:
        dist += distance(tour[-1], tour[0])
    return float(dist)


def point_segment_distance(point: Point, a: Point, b: Point) -> SegmentDistance:
    """Shortest distance from ``point`` to the segment ``a``-``b``.

    When the projection of ``point`` lands between the endpoints the
    perpendicular distance is returned; otherwise the distance to the nearer
    endpoint, which is reported as ``"a"`` or ``"b"``.
    """
    dx = b.x - a.x
    dy = b.y - a.y
    seg_len_sq = dx * dx + dy * dy
    if seg_len_sq == 0.0:
        return SegmentDistance(distance(point, a), False, "a")
    t = ((point.x - a.x) * dx + (point.y - a.y) * dy) / seg_len_sq
    if 0.0 <= t <= 1.0:
        cross = dx * (point.y - a.y) - dy * (point.x - a.x)
        return SegmentDistance(abs(cross) / math.sqrt(seg_len_sq), True)
    dist_a = distance(point, a)
    dist_b = distance(point, b)
    if dist_a < dist_b:
        return SegmentDistance(dist_a, False, "a")
    return SegmentDistance(dist_b, False, "b")


def average(values: Sequence[float]) -> float:
    if len(values) == 0:
        raise InvalidInput("average of an empty list is undefined")
    return float(np.mean(values))


def standard_deviation(values: Sequence[float]) -> float:
    # Population standard deviation (ddof=0).
    if len(values) == 0:
        raise InvalidInput("standard deviation of an empty list is undefined")
    return float(np.std(values))
