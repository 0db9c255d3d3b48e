from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import torch

from .geometry import Point, average, standard_deviation
from .operators.base import Tour


class DistanceMatrix:
    """Dense Euclidean distances between the points of one instance."""

    def __init__(self, points: Sequence[Point]):
        self.points = list(points)
        self.index: Dict[Point, int] = {p: i for i, p in enumerate(self.points)}
        coords = np.array([[p.x, p.y] for p in self.points], dtype=np.float64).reshape(-1, 2)
        diff = coords[:, None, :] - coords[None, :, :]
        self.matrix = np.sqrt((diff ** 2).sum(axis=-1))
        self._tensors: Dict[str, torch.Tensor] = {}

    def indices(self, tour: Sequence[Point]) -> np.ndarray:
        return np.fromiter((self.index[p] for p in tour), dtype=np.int64, count=len(tour))

    def tour_length(self, tour: Sequence[Point]) -> float:
        if len(tour) < 2:
            return 0.0
        idx = self.indices(tour)
        return float(self.matrix[idx, np.roll(idx, -1)].sum())

    def tensor(self, device) -> torch.Tensor:
        key = str(device)
        if key not in self._tensors:
            self._tensors[key] = torch.as_tensor(self.matrix, dtype=torch.float64, device=device)
        return self._tensors[key]


def _lengths_torch(dist: torch.Tensor, index_rows: np.ndarray) -> List[float]:
    idx = torch.as_tensor(index_rows, dtype=torch.long, device=dist.device)
    a = idx
    b = idx.roll(-1, dims=1)
    return dist[a, b].sum(dim=1).tolist()


def population_lengths(
    population: Sequence[Tour], dist: DistanceMatrix, device: Optional[str] = None
) -> List[float]:
    """Closed lengths of every tour, batched on ``device`` when one is given."""
    if not population:
        return []
    if device is None or len(population[0]) < 2:
        return [dist.tour_length(t) for t in population]
    rows = np.stack([dist.indices(t) for t in population])
    return _lengths_torch(dist.tensor(device), rows)


@dataclass
class PopulationStats:
    best_index: int
    best_length: float
    worst_index: int
    worst_length: float
    average_length: float
    std_length: float


def population_stats(lengths: Sequence[float]) -> PopulationStats:
    # First occurrence wins on ties, scanning in population order.
    best_index = 0
    worst_index = 0
    for idx, length in enumerate(lengths):
        if length < lengths[best_index]:
            best_index = idx
        if length > lengths[worst_index]:
            worst_index = idx
    return PopulationStats(
        best_index=best_index,
        best_length=float(lengths[best_index]),
        worst_index=worst_index,
        worst_length=float(lengths[worst_index]),
        average_length=average(lengths),
        std_length=standard_deviation(lengths),
    )
