"""Request parameters for subscriptions and snapshot fetches."""

from __future__ import annotations

import time
from dataclasses import dataclass


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class CandleSubscription:
    coin: str
    interval: str

    def to_wire(self) -> dict:
        return {"type": "candle", "coin": self.coin, "interval": self.interval}


@dataclass(frozen=True, slots=True)
class SnapshotRequest:
    """Historical candle range. `end_time` of None means "now" at fetch time."""

    coin: str
    interval: str
    start_time: int
    end_time: int | None = None

    @classmethod
    def lookback(cls, coin: str, interval: str, seconds: float) -> SnapshotRequest:
        """Request everything from `seconds` ago until now."""
        return cls(coin, interval, now_ms() - int(seconds * 1000))

    def resolved_end(self) -> int:
        return self.end_time if self.end_time is not None else now_ms()
