import logging
import queue
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

from .geometry import Point


logger = logging.getLogger(__name__)

TourView = Tuple[Point, ...]
Pair = Tuple[Point, Point]


@dataclass(frozen=True)
class ProgressSnapshot:
    generation: int
    best_tour: TourView
    best_length: float
    worst_tour: TourView
    worst_length: float
    average_length: float
    std_length: float
    population: Optional[Tuple[TourView, ...]] = None
    duration: Optional[float] = None
    stop_reason: Optional[str] = None

    @property
    def is_final(self) -> bool:
        return self.duration is not None


@dataclass(frozen=True)
class ConsensusState:
    step: int
    fragments: Tuple[TourView, ...]
    unused: TourView
    pairs: Tuple[Pair, ...]
    pair: Optional[Pair] = None
    tour: Optional[TourView] = None
    length: Optional[float] = None
    support: Optional[Dict[Pair, int]] = None
    duration: Optional[float] = None

    @property
    def is_final(self) -> bool:
        return self.duration is not None


_CLOSED = object()


class SnapshotChannel:
    """Bounded one-way channel from a run to its observers.

    ``publish`` never blocks: when the buffer is full the oldest snapshot is
    dropped, since consumers only need the latest state. ``close`` ends the
    stream; iterating the channel yields snapshots until then.
    """

    def __init__(self, maxsize: int = 256):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self.latest: Optional[Any] = None
        self.closed = False

    def _put(self, item: Any) -> None:
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    continue

    def publish(self, snapshot: Any) -> None:
        if self.closed:
            raise RuntimeError("cannot publish on a closed channel")
        self.latest = snapshot
        self._put(snapshot)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._put(_CLOSED)
        if self.dropped:
            logger.debug("channel closed after dropping %d snapshots", self.dropped)

    def get(self, timeout: Optional[float] = None) -> Optional[Any]:
        """Next snapshot, or ``None`` once the channel is closed and drained."""
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            # Leave the marker for other readers.
            self._put(_CLOSED)
            return None
        return item

    def __iter__(self) -> Iterator[Any]:
        while True:
            item = self.get()
            if item is None:
                return
            yield item
