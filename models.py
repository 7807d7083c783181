"""
Value types shared by the sampler, the execution context and the monitor.
"""

import enum
import time
from dataclasses import dataclass
from typing import Any, Dict

import config


def wall_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


class Transport(enum.Enum):
    POLLED = "REST"
    STREAMED = "WS"

    @classmethod
    def parse(cls, value) -> "Transport":
        if isinstance(value, cls):
            return value
        name = str(value).strip().upper()
        aliases = {"REST": cls.POLLED, "POLLED": cls.POLLED, "WS": cls.STREAMED, "STREAMED": cls.STREAMED}
        try:
            return aliases[name]
        except KeyError:
            raise ValueError(f"unknown transport '{value}'") from None


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


@dataclass(frozen=True)
class Sample:
    observed_at: int    # ms since epoch
    round_trip_ms: int  # ms

    def __post_init__(self):
        if self.round_trip_ms < 0:
            raise ValueError(f"round_trip_ms must be >= 0, got {self.round_trip_ms}")


@dataclass(frozen=True)
class SamplingConfig:
    """A complete sampler configuration. Never mutated, only replaced."""

    transport: Transport = Transport.POLLED
    period_ms: int = config.DEFAULT_PERIOD_MS  # 0 = unthrottled
    running: bool = True
    window_ms: int = config.DEFAULT_WINDOW_MS

    def __post_init__(self):
        object.__setattr__(self, "transport", Transport.parse(self.transport))
        if isinstance(self.period_ms, bool) or not isinstance(self.period_ms, int) or self.period_ms < 0:
            raise ValueError(f"period_ms must be an integer >= 0, got {self.period_ms!r}")
        if isinstance(self.window_ms, bool) or not isinstance(self.window_ms, int) or self.window_ms <= 0:
            raise ValueError(f"window_ms must be an integer > 0, got {self.window_ms!r}")
        if not isinstance(self.running, bool):
            raise ValueError(f"running must be a boolean, got {self.running!r}")

    @property
    def unthrottled(self) -> bool:
        return self.period_ms == 0

    @classmethod
    def from_message(cls, msg: Dict[str, Any]) -> "SamplingConfig":
        """Builds a config from a `{transport, period_ms, running, window_ms}` message."""
        return cls(
            transport=msg.get("transport", Transport.POLLED),
            period_ms=msg.get("period_ms", config.DEFAULT_PERIOD_MS),
            running=msg.get("running", True),
            window_ms=msg.get("window_ms", config.DEFAULT_WINDOW_MS),
        )

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": "config",
            "transport": self.transport.value,
            "period_ms": self.period_ms,
            "running": self.running,
            "window_ms": self.window_ms,
        }
