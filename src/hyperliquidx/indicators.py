"""Indicator series derived from a candle window.

Each function takes the window cell and returns an IndicatorSeries of two
computeds: `snapshot`, every indicator value over the window (warm-up
values dropped), and `current`, the latest one or None.

The math is pandas/ta; nothing here is stateful beyond the computeds.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Literal, Sequence

import numpy as np
import pandas as pd
from ta.momentum import RSIIndicator
from ta.trend import EMAIndicator
from ta.volatility import AverageTrueRange

from hyperliquidx.candles import Candle
from hyperliquidx.cell import Cell, Computed

Anchor = Literal["session", "week", "month", "year"]


@dataclass(frozen=True, slots=True)
class IndicatorSeries:
    snapshot: Computed[list[float]]
    current: Computed[float | None]


def _series(compute: Callable[[], list[float]]) -> IndicatorSeries:
    snapshot = Computed(compute)

    def _current() -> float | None:
        values = snapshot.get()
        return values[-1] if values else None

    return IndicatorSeries(snapshot, Computed(_current))


def _frame(candles: Sequence[Candle]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "close_time": [c.close_time for c in candles],
            "high": [c.high for c in candles],
            "low": [c.low for c in candles],
            "close": [c.close for c in candles],
            "volume": [c.volume for c in candles],
        },
        dtype=float,
    )


def _values(series: pd.Series) -> list[float]:
    return [float(v) for v in series.replace([np.inf, -np.inf], np.nan).dropna()]


def ema(window: Cell[list[Candle]], period: int) -> IndicatorSeries:
    """Exponential moving average of closes."""

    def _ema() -> list[float]:
        candles = window.get()
        if len(candles) < period:
            return []
        close = _frame(candles)["close"]
        return _values(EMAIndicator(close=close, window=period).ema_indicator())

    return _series(_ema)


def dema(window: Cell[list[Candle]], period: int) -> IndicatorSeries:
    """Double exponential moving average of closes: 2*EMA - EMA(EMA)."""

    def _dema() -> list[float]:
        candles = window.get()
        if len(candles) < period:
            return []
        close = _frame(candles)["close"]
        first = close.ewm(span=period, min_periods=period, adjust=False).mean()
        second = first.ewm(span=period, min_periods=period, adjust=False).mean()
        return _values(2 * first - second)

    return _series(_dema)


def rsi(window: Cell[list[Candle]], period: int = 14) -> IndicatorSeries:
    def _rsi() -> list[float]:
        candles = window.get()
        if len(candles) <= period:
            return []
        close = _frame(candles)["close"]
        return _values(RSIIndicator(close=close, window=period).rsi())

    return _series(_rsi)


def atr(window: Cell[list[Candle]], period: int = 14) -> IndicatorSeries:
    """Average true range. Empty until the window holds `period` candles."""

    def _atr() -> list[float]:
        candles = window.get()
        if len(candles) < period:
            return []
        frame = _frame(candles)
        line = AverageTrueRange(
            high=frame["high"], low=frame["low"], close=frame["close"], window=period
        ).average_true_range()
        return _values(line.iloc[period - 1 :])

    return _series(_atr)


def anchor_start(anchor: Anchor, now: datetime) -> int:
    """Epoch ms where an anchored calculation starts, in local time.

    session: the whole window; week: Monday 00:00; month: the 1st 00:00;
    year: January 1st 00:00.
    """
    if anchor == "session":
        return 0
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if anchor == "week":
        start = midnight - timedelta(days=midnight.weekday())
    elif anchor == "month":
        start = midnight.replace(day=1)
    elif anchor == "year":
        start = midnight.replace(month=1, day=1)
    else:
        raise ValueError(f"Unknown anchor {anchor!r}")
    return int(start.timestamp() * 1000)


def anchored_vwap(
    window: Cell[list[Candle]],
    anchor: Anchor = "session",
    now: datetime | None = None,
) -> IndicatorSeries:
    """Cumulative volume-weighted close from the anchor to the latest candle.

    A candle counts once it closes at or after the anchor, so a period that
    straddles the anchor is included. `now` pins the anchor; by default it
    follows the local clock on every recompute.
    """

    def _vwap() -> list[float]:
        candles = window.get()
        if not candles:
            return []
        frame = _frame(candles)
        frame = frame[frame["close_time"] >= anchor_start(anchor, now or datetime.now())]
        weighted = (frame["close"] * frame["volume"]).cumsum()
        return _values(weighted / frame["volume"].cumsum())

    return _series(_vwap)
