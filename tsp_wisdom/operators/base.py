from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from ..geometry import Point


Tour = List[Point]


@dataclass(frozen=True)
class FitnessEntry:
    """Fitness of the tour at ``index`` in the population it was scored from."""

    index: int
    fitness: float


def is_permutation(tour: Sequence[Point], points: Iterable[Point]) -> bool:
    return Counter(tour) == Counter(points) and len(set(tour)) == len(tour)


def sort_by_fitness(entries: Iterable[FitnessEntry]) -> List[FitnessEntry]:
    # Stable, so equal fitness keeps population order.
    return sorted(entries, key=lambda e: e.fitness, reverse=True)
