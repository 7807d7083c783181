from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Tuple

from models import Sample, wall_ms


@dataclass(frozen=True)
class WindowStats:
    count: int
    last: Optional[int]
    minimum: Optional[int]
    maximum: Optional[int]
    mean: Optional[float]


class SeriesWindow:
    """Time-bounded sequence of samples, oldest first.

    Samples arrive from a single completion stream, so `observed_at` is
    non-decreasing and expiry always happens at the left end.
    """

    def __init__(self, window_ms: int, clock=wall_ms):
        if window_ms <= 0:
            raise ValueError(f"window_ms must be > 0, got {window_ms}")
        self.window_ms = window_ms
        self._clock = clock
        self._samples: Deque[Sample] = deque()

    def __len__(self):
        return len(self._samples)

    def append(self, sample: Sample, now: Optional[int] = None) -> int:
        """Adds a sample at the end and prunes. Returns the number of samples dropped."""
        self._samples.append(sample)
        return self.prune(self._clock() if now is None else now)

    def prune(self, now: int, window_ms: Optional[int] = None) -> int:
        cutoff = now - (self.window_ms if window_ms is None else window_ms)
        dropped = 0
        while self._samples and self._samples[0].observed_at < cutoff:
            self._samples.popleft()
            dropped += 1
        return dropped

    def reconfigure(self, window_ms: int, now: Optional[int] = None) -> int:
        if window_ms <= 0:
            raise ValueError(f"window_ms must be > 0, got {window_ms}")
        self.window_ms = window_ms
        return self.prune(self._clock() if now is None else now)

    def snapshot(self) -> Tuple[Sample, ...]:
        return tuple(self._samples)

    def stats(self) -> WindowStats:
        if not self._samples:
            return WindowStats(0, None, None, None, None)
        values = [s.round_trip_ms for s in self._samples]
        return WindowStats(
            count=len(values),
            last=values[-1],
            minimum=min(values),
            maximum=max(values),
            mean=sum(values) / len(values),
        )
