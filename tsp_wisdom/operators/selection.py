import math
import random
from typing import List, Sequence, Tuple

from ..errors import DegenerateSelection
from .base import FitnessEntry, sort_by_fitness


MIN_LENGTH = 1e-12


def percentile_cubed_fitness(lengths: Sequence[float]) -> List[FitnessEntry]:
    """Score each length by its percentile between best and worst, cubed.

    The best tour scores 100**3 and the worst 0, so near-best tours dominate
    the roulette wheel.
    """
    lo = min(lengths)
    hi = max(lengths)
    spread = (hi - lo) or 1.0
    entries = []
    for idx, length in enumerate(lengths):
        percentile = 1.0 - (length - lo) / spread
        entries.append(FitnessEntry(idx, (percentile * 100.0) ** 3))
    return entries


def inverse_fitness(lengths: Sequence[float]) -> List[FitnessEntry]:
    return [FitnessEntry(idx, 1.0 / max(length, MIN_LENGTH)) for idx, length in enumerate(lengths)]


FITNESS_SCHEMES = {
    "percentile_cubed": percentile_cubed_fitness,
    "inverse": inverse_fitness,
}


def roulette_select(entries: Sequence[FitnessEntry], rng: random.Random) -> Tuple[int, int]:
    """Draw two population indices with probability proportional to fitness.

    Entries are scanned best-first; each draw picks the first entry whose
    running total exceeds it, so a zero-weight entry is never chosen while a
    positive one exists.
    """
    ranked = sort_by_fitness(entries)
    total = sum(e.fitness for e in ranked)
    if not ranked or not math.isfinite(total) or total <= 0:
        raise DegenerateSelection(f"cannot draw parents from total fitness {total!r}")
    draws = [rng.random() * total, rng.random() * total]
    picked: List[int] = [-1, -1]
    running = 0.0
    for entry in ranked:
        running += entry.fitness
        for slot, draw in enumerate(draws):
            if picked[slot] < 0 and running > draw:
                picked[slot] = entry.index
        if picked[0] >= 0 and picked[1] >= 0:
            break
    if picked[0] < 0 or picked[1] < 0:
        raise DegenerateSelection("cumulative fitness exhausted without a draw")
    return picked[0], picked[1]


def truncation_pools(
    entries: Sequence[FitnessEntry], mating_fraction: float, elite_fraction: float
) -> Tuple[List[int], List[int]]:
    """Split a scored population into a mating pool and guaranteed survivors.

    The pool is the top ``mating_fraction`` of the population; survivors are
    the top ``elite_fraction`` of that pool. Both keep at least one index.
    """
    ranked = sort_by_fitness(entries)
    pool_size = max(1, int(len(ranked) * mating_fraction))
    pool = [e.index for e in ranked[:pool_size]]
    elite_count = max(1, int(pool_size * elite_fraction))
    return pool, pool[:elite_count]


def uniform_pair(pool: Sequence[int], rng: random.Random) -> Tuple[int, int]:
    if len(pool) >= 2:
        a, b = rng.sample(list(pool), 2)
        return a, b
    return pool[0], pool[0]
