import concurrent.futures
import logging
import random
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .crowd import CrowdAggregator, CrowdConfig
from .errors import InvalidInput
from .evolutionary import EvolutionConfig, GeneticSearch
from .geometry import Point
from .snapshots import ConsensusState, ProgressSnapshot, SnapshotChannel


logger = logging.getLogger(__name__)


@dataclass
class OptimizerRun:
    """Handle on an optimizer run executing on a worker thread."""

    future: concurrent.futures.Future
    channel: SnapshotChannel
    cancel: threading.Event = field(default_factory=threading.Event)

    def result(self, timeout: Optional[float] = None) -> ProgressSnapshot:
        return self.future.result(timeout=timeout)

    def stop(self) -> None:
        self.cancel.set()

    @property
    def done(self) -> bool:
        return self.future.done()


@dataclass
class AggregatorRun:
    future: concurrent.futures.Future
    channel: SnapshotChannel

    def result(self, timeout: Optional[float] = None) -> ConsensusState:
        return self.future.result(timeout=timeout)


class RunCoordinator:
    """Starts optimizer and aggregator runs and wires their channels.

    Every run gets its own config copy, RNG and cancel event, so runs share
    no mutable state.
    """

    def __init__(self, max_workers: int = 4, channel_size: int = 256):
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)
        self.channel_size = channel_size
        self._active: List[OptimizerRun] = []
        self._lock = threading.Lock()

    def __enter__(self) -> "RunCoordinator":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    def shutdown(self) -> None:
        with self._lock:
            for run in self._active:
                run.stop()
        self.executor.shutdown(wait=True)

    def start_optimizer(
        self, points: Sequence[Point], config: EvolutionConfig, channel: SnapshotChannel = None
    ) -> OptimizerRun:
        channel = channel or SnapshotChannel(self.channel_size)
        cancel = threading.Event()
        config = config.replace()
        # Validate in the caller's thread so bad input never starts a run.
        search = GeneticSearch(points, config, rng=random.Random(config.random_seed), cancel=cancel)
        future = self.executor.submit(search.run, channel)
        run = OptimizerRun(future=future, channel=channel, cancel=cancel)
        with self._lock:
            self._active = [r for r in self._active if not r.done]
            self._active.append(run)
        return run

    def gather_experts(self, points: Sequence[Point], configs: Sequence[EvolutionConfig]) -> List[ProgressSnapshot]:
        """Run one independent optimizer per config and return their final snapshots."""
        if not configs:
            raise InvalidInput("at least one optimizer config is required")
        runs = [self.start_optimizer(points, cfg) for cfg in configs]
        logger.info("gathering %d experts", len(runs))
        finals = []
        for idx, run in enumerate(runs):
            for _ in run.channel:
                pass
            final = run.result()
            logger.info("expert %d finished: length=%.2f (%s)", idx, final.best_length, final.stop_reason)
            finals.append(final)
        return finals

    def consult_experts(
        self,
        experts: Sequence[Sequence[Point]],
        config: CrowdConfig = None,
        channel: SnapshotChannel = None,
    ) -> ConsensusState:
        return CrowdAggregator(experts, config).run(channel)

    def start_aggregator(
        self,
        experts: Sequence[Sequence[Point]],
        config: CrowdConfig = None,
        channel: SnapshotChannel = None,
    ) -> AggregatorRun:
        channel = channel or SnapshotChannel(self.channel_size)
        aggregator = CrowdAggregator(experts, config)
        future = self.executor.submit(aggregator.run, channel)
        return AggregatorRun(future=future, channel=channel)

    def run_crowd(
        self,
        points: Sequence[Point],
        configs: Sequence[EvolutionConfig],
        crowd_config: CrowdConfig = None,
        channel: SnapshotChannel = None,
    ) -> ConsensusState:
        finals = self.gather_experts(points, configs)
        experts = [list(f.best_tour) for f in finals]
        return self.consult_experts(experts, crowd_config, channel)


def expert_configs(base: EvolutionConfig, count: int, seed: Optional[int] = None) -> List[EvolutionConfig]:
    """``count`` copies of ``base`` with distinct seeds derived from ``seed``."""
    rng = random.Random(seed if seed is not None else base.random_seed)
    return [base.replace(random_seed=rng.randrange(2 ** 32)) for _ in range(count)]
