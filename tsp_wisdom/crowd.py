"""
Wisdom-of-crowds aggregation of finished tours.

Edges that a super-majority of experts agree on are kept as path fragments,
and the fragments plus any leftover points are then joined greedily by the
shortest admissible connection until one tour remains.
"""

import dataclasses
import logging
import math
import time
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

import numpy as np
from networkx.utils import UnionFind

from .errors import InvalidInput, StallDetected
from .evaluation import DistanceMatrix
from .geometry import Point, tour_length
from .operators.base import Tour
from .snapshots import ConsensusState, Pair, SnapshotChannel


logger = logging.getLogger(__name__)


@dataclass
class CrowdConfig:
    support_ratio: float = 0.9
    emit_states: bool = True


def _sort_key(p: Point):
    return (p.key, p.x, p.y)


def edge_key(a: Point, b: Point) -> Pair:
    """Order-independent key for the edge between ``a`` and ``b``."""
    return (a, b) if _sort_key(a) <= _sort_key(b) else (b, a)


def validate_experts(experts: Sequence[Sequence[Point]]) -> List[Point]:
    """Check the experts all permute one point set and return that set in the first expert's order."""
    if not experts:
        raise InvalidInput("at least one expert tour is required")
    nodes = list(experts[0])
    if not nodes:
        raise InvalidInput("expert tours must not be empty")
    node_set = set(nodes)
    if len(node_set) != len(nodes):
        raise InvalidInput("expert 0 visits a point more than once")
    for idx, expert in enumerate(experts[1:], start=1):
        if len(expert) != len(nodes) or set(expert) != node_set:
            raise InvalidInput(f"expert {idx} does not cover the same points as expert 0")
    return nodes


def edge_support(experts: Sequence[Sequence[Point]]) -> Counter:
    """Number of experts whose closed tour contains each edge."""
    support: Counter = Counter()
    for expert in experts:
        n = len(expert)
        edges = set()
        for i in range(n):
            a = expert[i]
            b = expert[(i + 1) % n]
            if a != b:
                edges.add(edge_key(a, b))
        support.update(edges)
    return support


def required_support(n_experts: int, support_ratio: float = 0.9) -> int:
    # Strict majority, and at least floor(ratio * n).
    return max(math.floor(support_ratio * n_experts), n_experts // 2 + 1)


def vote_edges(
    experts: Sequence[Sequence[Point]], support_ratio: float = 0.9, support: Counter = None
) -> List[Pair]:
    """Edges between each point and its best-supported neighbour.

    Candidates are scanned in the first expert's order and the first one with
    the highest count wins. Returned edges are normalized with ``edge_key`` and
    deduplicated, in the order they were found.
    """
    nodes = validate_experts(experts)
    order = {p: i for i, p in enumerate(nodes)}
    if support is None:
        support = edge_support(experts)
    neighbours: Dict[Point, Dict[Point, int]] = {p: {} for p in nodes}
    for (a, b), count in support.items():
        neighbours[a][b] = count
        neighbours[b][a] = count
    threshold = required_support(len(experts), support_ratio)
    accepted: List[Pair] = []
    seen: Set[Pair] = set()
    for point in nodes:
        best: Optional[Point] = None
        best_count = 0
        for candidate in sorted(neighbours[point], key=order.__getitem__):
            count = neighbours[point][candidate]
            if count > best_count:
                best = candidate
                best_count = count
        if best is None or best_count < threshold:
            continue
        key = edge_key(point, best)
        if key not in seen:
            seen.add(key)
            accepted.append(key)
    return accepted


def seed_fragments(edges: Sequence[Pair], support: Counter = None) -> List[Tour]:
    """Turn accepted edges into simple path fragments.

    Edges are taken strongest first; an edge that would give a point a third
    neighbour or close a cycle is dropped.
    """
    if support is not None:
        edges = sorted(edges, key=lambda e: -support.get(e, 0))
    components = UnionFind()
    degree: Counter = Counter()
    kept: List[Tour] = []
    for a, b in edges:
        if degree[a] >= 2 or degree[b] >= 2 or components[a] == components[b]:
            logger.debug("dropping edge %s-%s: would branch or close a cycle", a, b)
            continue
        components.union(a, b)
        degree[a] += 1
        degree[b] += 1
        kept.append([a, b])
    return merge_fragments(kept)


def _splice(target: Tour, frag: Tour) -> Optional[Tour]:
    """Join ``frag`` onto ``target`` at a shared endpoint, or None if they cannot join."""
    shared = set(target).intersection(frag)
    if len(shared) != 1:
        return None
    if target[-1] == frag[0]:
        return target + frag[1:]
    if target[-1] == frag[-1]:
        return target + frag[::-1][1:]
    if target[0] == frag[-1]:
        return frag[:-1] + target
    if target[0] == frag[0]:
        return frag[::-1][:-1] + target
    return None


def _merge_pass(fragments: Sequence[Tour]) -> Tuple[List[Tour], bool]:
    merged: List[Tour] = []
    ends: Dict[Point, List[int]] = {}
    changed = False
    for frag in fragments:
        frag = list(frag)
        joined_at = None
        for end in (frag[0], frag[-1]):
            for slot in ends.get(end, ()):
                joined = _splice(merged[slot], frag)
                if joined is not None:
                    joined_at = slot
                    break
            if joined_at is not None:
                break
        if joined_at is None:
            merged.append(frag)
            joined_at = len(merged) - 1
        else:
            old = merged[joined_at]
            for end in {old[0], old[-1]}:
                ends[end].remove(joined_at)
            merged[joined_at] = joined
            changed = True
        current = merged[joined_at]
        for end in {current[0], current[-1]}:
            ends.setdefault(end, []).append(joined_at)
    return merged, changed


def merge_fragments(fragments: Sequence[Sequence[Point]]) -> List[Tour]:
    """Splice fragments that share an endpoint until nothing more joins.

    A join that would repeat a point, including one that closes a fragment
    into a cycle, is not performed. The result is a fixed point, so merging it
    again changes nothing.
    """
    current = [list(f) for f in fragments if f]
    changed = True
    while changed:
        current, changed = _merge_pass(current)
    return current


def orient_like(tour: Sequence[Point], reference: Sequence[Point]) -> Tour:
    """Rotate ``tour`` to start where ``reference`` does and follow its direction if they agree."""
    tour = list(tour)
    if len(tour) < 3:
        if tour and tour[0] != reference[0]:
            tour.reverse()
        return tour
    start = tour.index(reference[0])
    tour = tour[start:] + tour[:start]
    if tour[1] != reference[1] and tour[-1] == reference[1]:
        tour = tour[:1] + tour[:0:-1]
    return tour


class CrowdAggregator:
    """Consensus tour builder over a fixed set of expert tours.

    Fragments live in an arena of slots; ``ends`` maps each fragment endpoint
    to its slot so joins never scan the fragment list.
    """

    def __init__(self, experts: Sequence[Sequence[Point]], config: CrowdConfig = None):
        self.nodes = validate_experts(experts)
        self.experts = [list(e) for e in experts]
        self.cfg = config or CrowdConfig()
        self.dist = DistanceMatrix(self.nodes)
        self.support = edge_support(self.experts)
        self.slots: List[Optional[Tour]] = []
        self.ends: Dict[Point, int] = {}
        self.unused: Dict[Point, None] = {}
        self.pairs: List[Pair] = []
        self.step = 0
        self.started_at: Optional[float] = None

    # ---- arena bookkeeping ----

    def _live(self) -> List[int]:
        return [i for i, frag in enumerate(self.slots) if frag is not None]

    def _add_slot(self, frag: Tour) -> int:
        self.slots.append(frag)
        slot = len(self.slots) - 1
        self.ends[frag[0]] = slot
        self.ends[frag[-1]] = slot
        return slot

    def load_fragments(self, fragments: Sequence[Sequence[Point]]) -> None:
        self.slots = []
        self.ends = {}
        placed: Set[Point] = set()
        for frag in fragments:
            frag = list(frag)
            if placed.intersection(frag) or len(set(frag)) != len(frag):
                raise InvalidInput("fragments must be disjoint simple paths")
            if not self.dist.index.keys() >= set(frag):
                raise InvalidInput("fragment contains a point outside the expert tours")
            if len(frag) < 2:
                # A lone point is just an unused point.
                continue
            placed.update(frag)
            self._add_slot(frag)
        self.unused = {p: None for p in self.nodes if p not in placed}

    def state(self, pair: Optional[Pair] = None) -> ConsensusState:
        return ConsensusState(
            step=self.step,
            fragments=tuple(tuple(self.slots[i]) for i in self._live()),
            unused=tuple(self.unused),
            pairs=tuple(self.pairs),
            pair=pair,
        )

    # ---- greedy reconnection ----

    def completed_tour(self) -> Optional[Tour]:
        live = self._live()
        if len(live) == 1 and not self.unused and len(self.slots[live[0]]) == len(self.nodes):
            return self.slots[live[0]]
        if not live and len(self.unused) == 1 and len(self.nodes) == 1:
            return list(self.unused)
        return None

    def closest_pair(self) -> Pair:
        """Shortest admissible connection among unused points and fragment ends."""
        candidates = dict(self.unused)
        for slot in self._live():
            frag = self.slots[slot]
            candidates.setdefault(frag[0])
            candidates.setdefault(frag[-1])
        pool = list(candidates)
        if len(pool) < 2:
            raise StallDetected(f"only {len(pool)} candidate endpoint(s) left")
        idx = self.dist.indices(pool)
        costs = self.dist.matrix[np.ix_(idx, idx)].copy()
        costs[np.tril_indices(len(pool))] = np.inf
        position = {p: i for i, p in enumerate(pool)}
        for slot in self._live():
            frag = self.slots[slot]
            i, j = sorted((position[frag[0]], position[frag[-1]]))
            costs[i, j] = np.inf
        flat = int(np.argmin(costs))
        i, j = divmod(flat, len(pool))
        if not np.isfinite(costs[i, j]):
            raise StallDetected("every remaining pair would reproduce an existing fragment")
        return pool[i], pool[j]

    def join(self, a: Point, b: Point) -> None:
        slot_a = self.ends.get(a)
        slot_b = self.ends.get(b)
        if slot_a is None and slot_b is None:
            del self.unused[a]
            del self.unused[b]
            self._add_slot([a, b])
            return
        if slot_a is None:
            a, b = b, a
            slot_a, slot_b = slot_b, slot_a
        frag_a = self.slots[slot_a]
        if frag_a[0] == a:
            frag_a.reverse()
        del self.ends[a]
        if slot_b is None:
            del self.unused[b]
            frag_a.append(b)
            self.ends[b] = slot_a
            return
        frag_b = self.slots[slot_b]
        if frag_b[-1] == b:
            frag_b.reverse()
        del self.ends[b]
        frag_a.extend(frag_b)
        self.slots[slot_b] = None
        self.ends[frag_a[-1]] = slot_a

    def reconnect(self) -> Iterator[ConsensusState]:
        """Join the closest admissible pair until one fragment spans every point."""
        while self.completed_tour() is None:
            a, b = self.closest_pair()
            self.join(a, b)
            self.pairs.append((a, b))
            self.step += 1
            yield self.state(pair=(a, b))

    # ---- driver ----

    def iter_states(self) -> Iterator[ConsensusState]:
        self.started_at = time.perf_counter()
        edges = vote_edges(self.experts, self.cfg.support_ratio, self.support)
        fragments = seed_fragments(edges, self.support)
        self.load_fragments(fragments)
        logger.info(
            "consulting %d experts: %d agreed edges, %d fragments, %d unused points",
            len(self.experts),
            len(edges),
            len(fragments),
            len(self.unused),
        )
        yield self.state()
        for state in self.reconnect():
            yield state
        tour = orient_like(self.completed_tour(), self.nodes)
        length = tour_length(tour, close_loop=True)
        n = len(tour)
        support = {}
        if n > 1:
            for i in range(n):
                key = edge_key(tour[i], tour[(i + 1) % n])
                support[key] = self.support.get(key, 0)
        self.step += 1
        duration = time.perf_counter() - self.started_at
        logger.info("consensus tour of %d points: length=%.2f in %.2fs", n, length, duration)
        yield dataclasses.replace(
            self.state(),
            tour=tuple(tour),
            length=length,
            support=support,
            duration=duration,
        )

    def run(self, channel: SnapshotChannel = None) -> ConsensusState:
        final = None
        try:
            for state in self.iter_states():
                if channel is not None and (self.cfg.emit_states or state.is_final):
                    channel.publish(state)
                final = state
        finally:
            if channel is not None:
                channel.close()
        return final


def consult_experts(
    experts: Sequence[Sequence[Point]], config: CrowdConfig = None, channel: SnapshotChannel = None
) -> ConsensusState:
    return CrowdAggregator(experts, config).run(channel)


def greedy_reconnect(points: Sequence[Point], fragments: Sequence[Sequence[Point]] = ()) -> Tour:
    """Close ``fragments`` and the remaining ``points`` into one tour, skipping the vote."""
    aggregator = CrowdAggregator([list(points)])
    aggregator.load_fragments(merge_fragments(fragments))
    for _ in aggregator.reconnect():
        pass
    return list(aggregator.completed_tour())
