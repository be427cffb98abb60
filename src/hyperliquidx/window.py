"""Streaming window: a bounded time series fed by a snapshot and a live stream.

A StreamingWindow fetches one historical snapshot through an AsyncResource
and then follows a live cell that carries the currently open period:

- seed: the first non-empty snapshot becomes the window and fixes its
  capacity. The seed step then disposes itself, so a refetch of the
  snapshot resource never writes to the window again.
- merge: a live period with the same key as the last element replaces it
  (the period is still open). Any other key means the last period closed:
  the new period is appended and, past capacity, the oldest is evicted.

Live updates that arrive before the seed are ignored.
"""

from __future__ import annotations

import asyncio
import logging
from operator import attrgetter
from typing import Any, Callable, Generic, TypeVar

from hyperliquidx.cell import Cell, Computed
from hyperliquidx.effect import effect_when_defined
from hyperliquidx.resource import AsyncResource, Fetcher, ResourceState

logger = logging.getLogger("hyperliquidx.window")

P = TypeVar("P")
S = TypeVar("S")

default_key: Callable[[Any], Any] = attrgetter("open_time")


class StreamingWindow(Generic[P]):
    """Last-N-periods view merging a snapshot fetch with live updates.

    Capacity is the length of the first snapshot and stays fixed for the
    life of the window, even if a later request would return more periods.
    """

    def __init__(
        self,
        live: Cell[P | None],
        fetch_snapshot: Fetcher[S, list[P]],
        request: S,
        *,
        key: Callable[[P], Any] = default_key,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._key = key
        self._capacity = 0
        self._seeded = False
        self._disposed = False
        self.window: Cell[list[P]] = Cell([])
        self.last_closed: Computed[P | None] = last_closed(self.window)
        self.snapshot: AsyncResource[S, list[P]] = AsyncResource(
            lambda: request, fetch_snapshot, loop=loop
        )
        self._seed = effect_when_defined([self.snapshot.state], self._seed_from)
        self._merge = effect_when_defined([live], self._merge_live)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def seeded(self) -> bool:
        return self._seeded

    def _seed_from(self, state: ResourceState[list[P]]) -> None:
        if self._seeded or state.data is None:
            return
        if not state.data:
            logger.warning("Snapshot returned no periods; waiting for a refetch to seed")
            return
        self._seeded = True
        # one-shot: later snapshot refetches no longer reach this callback
        self._seed.dispose()
        if self.window.peek():
            return
        self._capacity = len(state.data)
        self.window.set(list(state.data))
        logger.debug("Window seeded with %d periods", self._capacity)

    def _merge_live(self, period: P) -> None:
        current = self.window.peek()
        if not current:
            return

        if self._key(current[-1]) == self._key(period):
            updated = [*current[:-1], period]
        else:
            updated = [*current, period]
            if len(updated) > self._capacity:
                del updated[0]
        self.window.set(updated)

    def dispose(self) -> None:
        """Stop both effects and the snapshot resource. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        self._seed.dispose()
        self._merge.dispose()
        self.snapshot.dispose()

    def __repr__(self) -> str:
        return f"StreamingWindow(capacity={self._capacity}, size={len(self.window.peek())})"


def last_closed(window: Cell[list[P]]) -> Computed[P | None]:
    """Derived cell: the most recently closed period, window[-2]."""

    def _last_closed() -> P | None:
        periods = window.get()
        return periods[-2] if len(periods) >= 2 else None

    return Computed(_last_closed)
