import random
from typing import List, Optional, Sequence, Set

from ..geometry import Point, distance
from .base import Tour


def _fill_from(child: Tour, parent: Sequence[Point], size: int) -> Tour:
    present: Set[Point] = set(child)
    for point in parent:
        if len(child) == size:
            break
        if point not in present:
            child.append(point)
            present.add(point)
    return child


def prefix_fill(
    parent_a: Sequence[Point], parent_b: Sequence[Point], rng: random.Random, cut: Optional[int] = None
) -> List[Tour]:
    """Copy a random-length prefix of each parent, fill from the other parent."""
    n = len(parent_a)
    if cut is None:
        cut = rng.randrange(n)
    child_a = _fill_from(list(parent_a[:cut]), parent_b, n)
    child_b = _fill_from(list(parent_b[:cut]), parent_a, n)
    return [child_a, child_b]


def nearest_neighbor_merge(
    parent_a: Sequence[Point], parent_b: Sequence[Point], rng: Optional[random.Random] = None
) -> List[Tour]:
    """Walk both parents, always taking whichever next unused point is closer.

    Starts from parent A's first point. Points left behind in one parent are
    always still ahead of its cursor, so both cursors stay in range until the
    child is complete.
    """
    n = len(parent_a)
    child: Tour = [parent_a[0]]
    used: Set[Point] = {parent_a[0]}
    idx_a = 1
    idx_b = 0
    while len(child) < n:
        while parent_a[idx_a] in used:
            idx_a += 1
        while parent_b[idx_b] in used:
            idx_b += 1
        dest_a = parent_a[idx_a]
        dest_b = parent_b[idx_b]
        last = child[-1]
        nxt = dest_a if distance(last, dest_a) <= distance(last, dest_b) else dest_b
        child.append(nxt)
        used.add(nxt)
    return [child]


def _slice_child(core_parent: Sequence[Point], other: Sequence[Point], start: int, end: int) -> Tour:
    core = list(core_parent[start:end])
    present = set(core)
    front: Tour = []
    back: Tour = []
    for pos, point in enumerate(other):
        if point in present:
            continue
        if pos < start:
            front.append(point)
        else:
            back.append(point)
    return front + core + back


def double_slice_fill(
    parent_a: Sequence[Point],
    parent_b: Sequence[Point],
    rng: random.Random,
    cuts: Optional[Sequence[int]] = None,
) -> List[Tour]:
    """Keep a random slice of each parent and fill around it from the other.

    Two independent cut points are drawn; the smaller is the inclusive start
    and the larger the exclusive end. Missing points found in the other parent
    before the start go in front of the slice, the rest after it.
    """
    n = len(parent_a)
    if cuts is None:
        cuts = (rng.randrange(n + 1), rng.randrange(n + 1))
    start, end = sorted(cuts)
    return [
        _slice_child(parent_a, parent_b, start, end),
        _slice_child(parent_b, parent_a, start, end),
    ]


CROSSOVERS = {
    "prefix": prefix_fill,
    "nearest": nearest_neighbor_merge,
    "double_slice": double_slice_fill,
}
