from .base import FitnessEntry, Tour, is_permutation, sort_by_fitness
from .crossover import CROSSOVERS, double_slice_fill, nearest_neighbor_merge, prefix_fill
from .mutation import swap_mutation
from .selection import (
    FITNESS_SCHEMES,
    inverse_fitness,
    percentile_cubed_fitness,
    roulette_select,
    truncation_pools,
    uniform_pair,
)

__all__ = [
    "Tour",
    "FitnessEntry",
    "is_permutation",
    "sort_by_fitness",
    "CROSSOVERS",
    "prefix_fill",
    "nearest_neighbor_merge",
    "double_slice_fill",
    "swap_mutation",
    "FITNESS_SCHEMES",
    "percentile_cubed_fitness",
    "inverse_fitness",
    "roulette_select",
    "truncation_pools",
    "uniform_pair",
]
