import random
from typing import Sequence

from ..geometry import Point
from .base import Tour


def swap_mutation(tour: Sequence[Point], rate: float, rng: random.Random) -> Tour:
    """Return a copy of ``tour`` with two random positions swapped at ``rate``."""
    clone = list(tour)
    if rng.random() < rate:
        i = rng.randrange(len(clone))
        j = rng.randrange(len(clone))
        clone[i], clone[j] = clone[j], clone[i]
    return clone
