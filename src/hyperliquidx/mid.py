"""Mid price for one coin from the `allMids` channel."""

from __future__ import annotations

from dataclasses import dataclass

from hyperliquidx.cell import Cell
from hyperliquidx.errors import ConfigurationError
from hyperliquidx.stream import InfoClient, Subscription


@dataclass(frozen=True, slots=True)
class MidFeed:
    mid: Cell[float | None]
    subscription: Subscription

    def dispose(self) -> None:
        self.subscription.dispose()


def subscribe_mid(info: InfoClient, coin: str) -> MidFeed:
    """Follow the mid price of `coin`.

    A push that does not contain `coin` means the caller asked for a coin
    the exchange does not quote: ConfigurationError is raised and the
    Subscription disposes itself.
    """
    mid: Cell[float | None] = Cell(None)

    def _on_mids(data: dict) -> None:
        raw = data["mids"].get(coin)
        if not raw:
            raise ConfigurationError(f"Configured coin {coin!r} was not found in allMids")
        mid.set(float(raw))

    return MidFeed(mid, Subscription(info, {"type": "allMids"}, _on_mids))
