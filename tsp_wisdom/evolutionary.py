import dataclasses
import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from .errors import DegenerateSelection, InvalidInput
from .evaluation import DistanceMatrix, population_lengths, population_stats
from .geometry import Point
from .operators import CROSSOVERS, FITNESS_SCHEMES, Tour, roulette_select, swap_mutation, truncation_pools, uniform_pair
from .snapshots import ProgressSnapshot, SnapshotChannel


logger = logging.getLogger(__name__)

SELECTION_SCHEMES = ("roulette", "truncation")
STOPPING_RULES = ("horizon", "stagnation")


@dataclass
class EvolutionConfig:
    population_size: int = 50
    fitness: str = "percentile_cubed"
    selection: str = "roulette"
    crossover: str = "prefix"
    mutation_rate: float = 0.02
    stopping: str = "horizon"
    max_generations: int = 300_000
    stagnation_limit: int = 10_000
    mating_fraction: float = 0.5
    elite_fraction: float = 0.1
    selection_retries: int = 3
    max_runtime: Optional[float] = None
    log_interval: int = 1000
    keep_population: bool = True
    device: Optional[str] = None
    random_seed: Optional[int] = None

    @classmethod
    def for_algorithm(cls, algorithm: int, **overrides) -> "EvolutionConfig":
        """Preset for one of the numbered algorithm variants (1-5)."""
        if algorithm in (1, 2, 3, 4):
            cfg = cls(
                fitness="percentile_cubed",
                selection="roulette",
                crossover="prefix" if algorithm <= 2 else "nearest",
                mutation_rate=0.015 if algorithm % 2 == 0 else 0.02,
                stopping="horizon",
            )
        elif algorithm == 5:
            cfg = cls(
                population_size=100,
                fitness="inverse",
                selection="truncation",
                crossover="double_slice",
                mutation_rate=0.02,
                stopping="stagnation",
            )
        else:
            raise InvalidInput(f"unknown algorithm variant {algorithm}")
        return cfg.replace(**overrides)

    def replace(self, **changes) -> "EvolutionConfig":
        return dataclasses.replace(self, **changes)

    def validate(self) -> None:
        if self.population_size < 2:
            raise InvalidInput("population_size must be at least 2")
        if self.fitness not in FITNESS_SCHEMES:
            raise InvalidInput(f"unknown fitness scheme {self.fitness!r}")
        if self.selection not in SELECTION_SCHEMES:
            raise InvalidInput(f"unknown selection scheme {self.selection!r}")
        if self.crossover not in CROSSOVERS:
            raise InvalidInput(f"unknown crossover {self.crossover!r}")
        if self.stopping not in STOPPING_RULES:
            raise InvalidInput(f"unknown stopping rule {self.stopping!r}")
        if not 0.0 <= self.mutation_rate <= 1.0:
            raise InvalidInput("mutation_rate must be within [0, 1]")
        if not 0.0 < self.mating_fraction <= 1.0 or not 0.0 < self.elite_fraction <= 1.0:
            raise InvalidInput("mating_fraction and elite_fraction must be within (0, 1]")
        if self.max_generations < 0 or self.stagnation_limit < 1:
            raise InvalidInput("max_generations must be >= 0 and stagnation_limit >= 1")
        if self.selection_retries < 0:
            raise InvalidInput("selection_retries must be >= 0")


class GeneticSearch:
    """One generational run over a fixed point set.

    ``step`` advances a generation and returns its snapshot; ``run`` loops
    until the stopping rule fires and publishes every snapshot on a channel.
    """

    def __init__(
        self,
        points: Sequence[Point],
        config: EvolutionConfig,
        rng: random.Random = None,
        cancel: threading.Event = None,
    ):
        points = list(points)
        if len(points) < 2:
            raise InvalidInput(f"need at least 2 points, got {len(points)}")
        if len(set(points)) != len(points):
            raise InvalidInput("points must be unique")
        config.validate()
        self.points = points
        self.cfg = config
        self.rng = rng or random.Random(config.random_seed)
        self.cancel = cancel or threading.Event()
        self.dist = DistanceMatrix(points)
        self.fitness_fn = FITNESS_SCHEMES[config.fitness]
        self.crossover_fn = CROSSOVERS[config.crossover]
        self.population: List[Tour] = []
        self.lengths: List[float] = []
        self.generation = -1
        self.best_length = float("inf")
        self.stagnation = 0
        self.started_at: Optional[float] = None

    def initial_population(self) -> List[Tour]:
        n = len(self.points)
        return [self.rng.sample(self.points, n) for _ in range(self.cfg.population_size)]

    def evaluate(self) -> ProgressSnapshot:
        self.lengths = population_lengths(self.population, self.dist, self.cfg.device)
        stats = population_stats(self.lengths)
        if stats.best_length < self.best_length:
            self.best_length = stats.best_length
            self.stagnation = 0
        else:
            self.stagnation += 1
        population = None
        if self.cfg.keep_population:
            population = tuple(tuple(t) for t in self.population)
        return ProgressSnapshot(
            generation=self.generation,
            best_tour=tuple(self.population[stats.best_index]),
            best_length=stats.best_length,
            worst_tour=tuple(self.population[stats.worst_index]),
            worst_length=stats.worst_length,
            average_length=stats.average_length,
            std_length=stats.std_length,
            population=population,
        )

    def _select_parents(self, entries) -> Tuple[int, int]:
        attempts = self.cfg.selection_retries + 1
        for attempt in range(attempts):
            try:
                return roulette_select(entries, self.rng)
            except DegenerateSelection as exc:
                logger.warning("generation %d: selection attempt %d failed: %s", self.generation, attempt + 1, exc)
        raise DegenerateSelection(f"generation {self.generation} failed: no parents after {attempts} attempts")

    def _offspring(self, parent_a: Tour, parent_b: Tour) -> List[Tour]:
        children = self.crossover_fn(parent_a, parent_b, self.rng)
        return [swap_mutation(child, self.cfg.mutation_rate, self.rng) for child in children]

    def breed(self) -> List[Tour]:
        size = self.cfg.population_size
        entries = self.fitness_fn(self.lengths)
        new_pop: List[Tour] = []
        if self.cfg.selection == "truncation":
            pool, survivors = truncation_pools(entries, self.cfg.mating_fraction, self.cfg.elite_fraction)
            new_pop.extend(list(self.population[i]) for i in survivors)
            while len(new_pop) < size:
                a, b = uniform_pair(pool, self.rng)
                new_pop.extend(self._offspring(self.population[a], self.population[b]))
        else:
            while len(new_pop) < size:
                a, b = self._select_parents(entries)
                new_pop.extend(self._offspring(self.population[a], self.population[b]))
        return new_pop[:size]

    def step(self) -> ProgressSnapshot:
        if self.started_at is None:
            self.started_at = time.perf_counter()
        if self.generation < 0:
            self.population = self.initial_population()
        else:
            self.population = self.breed()
        self.generation += 1
        snapshot = self.evaluate()
        if self.cfg.log_interval and self.generation % self.cfg.log_interval == 0:
            logger.debug(
                "gen %d: best=%.2f avg=%.2f worst=%.2f stagnation=%d",
                self.generation,
                snapshot.best_length,
                snapshot.average_length,
                snapshot.worst_length,
                self.stagnation,
            )
        return snapshot

    def stop_reason(self) -> Optional[str]:
        if self.cancel.is_set():
            return "cancelled"
        if self.cfg.max_runtime is not None and time.perf_counter() - self.started_at >= self.cfg.max_runtime:
            return "timeout"
        if self.cfg.stopping == "horizon":
            if self.generation >= self.cfg.max_generations:
                return "horizon"
        elif self.stagnation >= self.cfg.stagnation_limit:
            return "stagnation"
        return None

    def iter_snapshots(self) -> Iterator[ProgressSnapshot]:
        """Yield one snapshot per generation; the last one carries ``duration``."""
        logger.info(
            "starting run: %d points, population=%d, crossover=%s, selection=%s, stopping=%s",
            len(self.points),
            self.cfg.population_size,
            self.cfg.crossover,
            self.cfg.selection,
            self.cfg.stopping,
        )
        while True:
            snapshot = self.step()
            reason = self.stop_reason()
            if reason is None:
                yield snapshot
                continue
            duration = time.perf_counter() - self.started_at
            final = dataclasses.replace(snapshot, duration=duration, stop_reason=reason)
            logger.info(
                "run stopped (%s) at generation %d: best=%.2f in %.2fs",
                reason,
                self.generation,
                final.best_length,
                duration,
            )
            yield final
            return

    def run(self, channel: SnapshotChannel = None) -> ProgressSnapshot:
        final = None
        try:
            for snapshot in self.iter_snapshots():
                if channel is not None:
                    channel.publish(snapshot)
                final = snapshot
        finally:
            if channel is not None:
                channel.close()
        return final
