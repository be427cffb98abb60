"""hyperliquidx: reactive market data for Hyperliquid."""

from importlib.metadata import version as _version

__version__ = _version("hyperliquidx")

from hyperliquidx._tracking import get_pending_count, untracked
from hyperliquidx.cell import Cell, Computed, computed, set_scheduler
from hyperliquidx.effect import Effect, DefinedEffect, effect, effect_when_defined
from hyperliquidx.action import action, batch
from hyperliquidx.errors import HyperliquidXError, FetchCancelled, ConfigurationError
from hyperliquidx.resource import (
    ABSENT,
    IDLE,
    AsyncResource,
    CancellationToken,
    Present,
    ResourceState,
    create_resource,
)
from hyperliquidx.window import StreamingWindow, last_closed
from hyperliquidx.config import CandleSubscription, SnapshotRequest
from hyperliquidx.stream import Subscription
from hyperliquidx.candles import Candle, CandleFeed, candle_window, subscribe_candles
from hyperliquidx.mid import MidFeed, subscribe_mid
from hyperliquidx.account import (
    account_balance,
    account_positions,
    subscribe_order_updates,
    subscribe_web_data2,
)
# indicators NOT auto-imported: pulls in pandas/ta, opt-in only

__all__ = [
    "Cell",
    "Computed",
    "computed",
    "set_scheduler",
    "Effect",
    "DefinedEffect",
    "effect",
    "effect_when_defined",
    "action",
    "batch",
    "untracked",
    "get_pending_count",
    "HyperliquidXError",
    "FetchCancelled",
    "ConfigurationError",
    "ABSENT",
    "IDLE",
    "AsyncResource",
    "CancellationToken",
    "Present",
    "ResourceState",
    "create_resource",
    "StreamingWindow",
    "last_closed",
    "CandleSubscription",
    "SnapshotRequest",
    "Subscription",
    "Candle",
    "CandleFeed",
    "candle_window",
    "subscribe_candles",
    "MidFeed",
    "subscribe_mid",
    "account_balance",
    "account_positions",
    "subscribe_order_updates",
    "subscribe_web_data2",
]
