"""Websocket subscriptions on the Hyperliquid SDK `Info` object.

The SDK calls back on its own websocket thread with messages shaped like
{"channel": ..., "data": ...}. A Subscription unwraps `data` and hands it
to a push callback. When set_scheduler() is configured the callback itself
runs on the event loop, and the disposed check happens there too: a push
queued before dispose() never reaches the callback.

A callback that raises ConfigurationError tears its own subscription down
before the error propagates. This also covers a push that lands before
`Info.subscribe` has returned the subscription id.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from hyperliquidx.cell import marshal
from hyperliquidx.errors import ConfigurationError

logger = logging.getLogger("hyperliquidx.stream")


class InfoClient(Protocol):
    """The subset of `hyperliquid.info.Info` this package uses."""

    def subscribe(self, subscription: Any, callback: Callable[[Any], None]) -> int: ...

    def unsubscribe(self, subscription: Any, subscription_id: int) -> bool: ...

    def candles_snapshot(self, name: str, interval: str, startTime: int, endTime: int) -> Any: ...


class Subscription:
    """Disposable handle for one SDK websocket subscription."""

    __slots__ = ("_info", "_subscription", "_on_data", "_id", "_disposed")

    def __init__(self, info: InfoClient, subscription: dict, on_data: Callable[[Any], None]) -> None:
        self._info = info
        self._subscription = subscription
        self._on_data = on_data
        self._id: int | None = None
        self._disposed = False

        subscription_id = info.subscribe(subscription, self._on_message)
        self._id = subscription_id
        logger.debug("Subscribed to %s (id=%s)", subscription, subscription_id)
        if self._disposed:
            # torn down by a callback that ran before the id was known
            self._unsubscribe()

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def subscription_id(self) -> int | None:
        return self._id

    def _on_message(self, message: Any) -> None:
        if self._disposed:
            return
        data = message["data"]
        marshal(lambda: self._deliver(data))

    def _deliver(self, data: Any) -> None:
        if self._disposed:
            logger.debug("Dropping push for disposed %s", self._subscription)
            return
        try:
            self._on_data(data)
        except ConfigurationError:
            self.dispose()
            raise

    def dispose(self) -> None:
        """Unsubscribe from the websocket. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        if self._id is not None:
            self._unsubscribe()

    def _unsubscribe(self) -> None:
        self._info.unsubscribe(self._subscription, self._id)
        logger.debug("Unsubscribed from %s (id=%s)", self._subscription, self._id)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Subscription({self._subscription!r}, {state})"


def subscribe(info: InfoClient, subscription: dict, on_data: Callable[[Any], None]) -> Subscription:
    """Subscribe `on_data` to a channel; returns the Subscription handle."""
    return Subscription(info, subscription, on_data)
