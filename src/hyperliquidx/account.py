"""Account data: webData2 snapshot, order updates, balance and positions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from hyperliquidx.cell import Cell, Computed
from hyperliquidx.stream import InfoClient, Subscription


@dataclass(frozen=True, slots=True)
class WebData2Feed:
    web_data2: Cell[dict | None]
    subscription: Subscription

    def dispose(self) -> None:
        self.subscription.dispose()


@dataclass(frozen=True, slots=True)
class OrderUpdatesFeed:
    """Order updates pushed during this subscription, plus open/filled views."""

    updates: Cell[list[dict]]
    open: Computed[list[dict]]
    fills: Computed[list[dict]]
    subscription: Subscription

    def dispose(self) -> None:
        self.subscription.dispose()


def subscribe_web_data2(info: InfoClient, user: str) -> WebData2Feed:
    web_data2: Cell[dict | None] = Cell(None)
    subscription = Subscription(
        info,
        {"type": "webData2", "user": user},
        lambda data: web_data2.set(dict(data)),
    )
    return WebData2Feed(web_data2, subscription)


def subscribe_order_updates(info: InfoClient, user: str) -> OrderUpdatesFeed:
    updates: Cell[list[dict]] = Cell([])
    subscription = Subscription(
        info,
        {"type": "orderUpdates", "user": user},
        lambda orders: updates.set(list(orders)),
    )
    return OrderUpdatesFeed(
        updates=updates,
        open=_with_status(updates, "open"),
        fills=_with_status(updates, "filled"),
        subscription=subscription,
    )


def _with_status(updates: Cell[list[dict]], status: str) -> Computed[list[dict]]:
    return Computed(lambda: [order for order in updates.get() if order.get("status") == status])


def account_balance(feed: WebData2Feed) -> Computed[float | None]:
    """Withdrawable balance, None until the first webData2 push."""

    def _balance() -> float | None:
        data = feed.web_data2.get()
        if not data:
            return None
        return float(data["clearinghouseState"]["withdrawable"])

    return Computed(_balance)


def account_positions(feed: WebData2Feed) -> Computed[list[Any]]:
    """Open asset positions, empty until the first webData2 push."""

    def _positions() -> list[Any]:
        data = feed.web_data2.get()
        if not data:
            return []
        return data["clearinghouseState"]["assetPositions"]

    return Computed(_positions)
