"""Candles: live current candle, rolling candle window, last closed candle.

Usage:
    feed = subscribe_candles(info, "ETH", "1m")
    candles = candle_window(feed.current, info, SnapshotRequest.lookback("ETH", "1m", 7 * 86400))
    closed = last_closed(candles.window)

    ...
    candles.dispose()
    feed.dispose()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping

from hyperliquidx.cell import Cell
from hyperliquidx.config import CandleSubscription, SnapshotRequest
from hyperliquidx.resource import CancellationToken
from hyperliquidx.stream import InfoClient, Subscription
from hyperliquidx.window import StreamingWindow, last_closed

__all__ = [
    "Candle",
    "CandleFeed",
    "subscribe_candles",
    "snapshot_fetcher",
    "candle_window",
    "last_closed",
]


@dataclass(frozen=True, slots=True)
class Candle:
    """One OHLCV period. Times are epoch milliseconds."""

    open_time: int
    close_time: int
    coin: str
    interval: str
    open: float
    high: float
    low: float
    close: float
    volume: float
    trades: int = 0

    @classmethod
    def from_wire(cls, raw: Mapping[str, Any]) -> Candle:
        """Parse the SDK's {"t", "T", "s", "i", "o", "h", "l", "c", "v", "n"} dict."""
        return cls(
            open_time=int(raw["t"]),
            close_time=int(raw["T"]),
            coin=raw["s"],
            interval=raw["i"],
            open=float(raw["o"]),
            high=float(raw["h"]),
            low=float(raw["l"]),
            close=float(raw["c"]),
            volume=float(raw["v"]),
            trades=int(raw.get("n", 0)),
        )


@dataclass(frozen=True, slots=True)
class CandleFeed:
    current: Cell[Candle | None]
    subscription: Subscription

    def dispose(self) -> None:
        self.subscription.dispose()


def subscribe_candles(info: InfoClient, coin: str, interval: str) -> CandleFeed:
    """Follow the live candle for coin/interval. `current` is None until the first push."""
    current: Cell[Candle | None] = Cell(None)
    subscription = Subscription(
        info,
        CandleSubscription(coin, interval).to_wire(),
        lambda data: current.set(Candle.from_wire(data)),
    )
    return CandleFeed(current, subscription)


def snapshot_fetcher(info: InfoClient):
    """Build a fetcher that loads historical candles without blocking the loop."""

    async def fetch(request: SnapshotRequest, token: CancellationToken) -> list[Candle]:
        token.raise_if_cancelled()
        rows = await asyncio.to_thread(
            info.candles_snapshot,
            request.coin,
            request.interval,
            request.start_time,
            request.resolved_end(),
        )
        token.raise_if_cancelled()
        return [Candle.from_wire(row) for row in rows]

    return fetch


def candle_window(
    current: Cell[Candle | None],
    info: InfoClient,
    request: SnapshotRequest,
    *,
    loop: asyncio.AbstractEventLoop | None = None,
) -> StreamingWindow[Candle]:
    """Rolling window of the last N candles, N being the snapshot length."""
    return StreamingWindow(current, snapshot_fetcher(info), request, loop=loop)
