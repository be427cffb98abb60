"""Shared fixtures: scheduler reset and a fake SDK Info client."""

import pytest

import hyperliquidx.cell as _cell_mod


@pytest.fixture(autouse=True)
def _reset_scheduler():
    old_sched, old_thread = _cell_mod._scheduler, _cell_mod._scheduler_thread
    _cell_mod._scheduler = None
    _cell_mod._scheduler_thread = None
    yield
    _cell_mod._scheduler = old_sched
    _cell_mod._scheduler_thread = old_thread


class FakeInfo:
    """Records subscriptions and lets tests push websocket messages."""

    def __init__(self, candles=None):
        self.callbacks = {}
        self.unsubscribed = []
        self.snapshot_calls = []
        self.candles = candles or []
        self._next_id = 0

    def subscribe(self, subscription, callback):
        self._next_id += 1
        self.callbacks[self._next_id] = (subscription, callback)
        return self._next_id

    def unsubscribe(self, subscription, subscription_id):
        self.unsubscribed.append((subscription, subscription_id))
        return self.callbacks.pop(subscription_id, None) is not None

    def candles_snapshot(self, name, interval, startTime, endTime):
        self.snapshot_calls.append((name, interval, startTime, endTime))
        return list(self.candles)

    def push(self, channel, data):
        """Deliver a message to every live subscription of `channel`'s type."""
        for subscription, callback in list(self.callbacks.values()):
            if subscription["type"] == channel:
                callback({"channel": channel, "data": data})


@pytest.fixture
def info():
    return FakeInfo()


def wire_candle(open_time, close="100.0", volume="1.0", coin="ETH", interval="1m",
                high=None, low=None):
    """An SDK-shaped candle dict."""
    return {
        "t": open_time,
        "T": open_time + 59_999,
        "s": coin,
        "i": interval,
        "o": close,
        "c": close,
        "h": high or close,
        "l": low or close,
        "v": volume,
        "n": 3,
    }
