"""Async resources: a cached, race-free async result derived from a cell.

An AsyncResource watches a source function. Every time the source changes
(or refetch() is called) it bumps a per-instance generation counter,
cancels the previous CancellationToken and starts the fetcher as an
asyncio task. A task may only write its result if its generation is still
current when it finishes, so the last source value always wins, whatever
order the fetches complete in.

Cancellation is advisory: the engine never cancels the task itself. A
fetcher that wants to stop real work early polls its token and raises
FetchCancelled; the engine discards late results either way.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from hyperliquidx._tracking import untracked
from hyperliquidx.cell import Cell
from hyperliquidx.effect import effect
from hyperliquidx.errors import FetchCancelled

logger = logging.getLogger("hyperliquidx.resource")

S = TypeVar("S")
D = TypeVar("D")


class _Absent:
    __slots__ = ()

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Any = _Absent()


@dataclass(frozen=True, slots=True)
class Present(Generic[S]):
    """Marks a source value as present, even one that reads as absent (None, False)."""

    value: S


def unwrap_source(raw: object) -> tuple[bool, Any]:
    """Split a raw source value into (present, value).

    None, False and ABSENT are absent. Everything else is present,
    including 0 and the empty string.
    """
    if isinstance(raw, Present):
        return True, raw.value
    if raw is None or raw is False or raw is ABSENT:
        return False, None
    return True, raw


@dataclass(frozen=True, slots=True)
class ResourceState(Generic[D]):
    """Snapshot of a resource: last data, whether a fetch is running, last error."""

    data: D | None = None
    loading: bool = False
    error: BaseException | None = None


IDLE: ResourceState[Any] = ResourceState()


class CancellationToken:
    """Advisory cancel signal handed to each fetch."""

    __slots__ = ("_cancelled", "_event")

    def __init__(self) -> None:
        self._cancelled = False
        self._event: asyncio.Event | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise FetchCancelled if the token fired."""
        if self._cancelled:
            raise FetchCancelled()

    async def wait(self) -> None:
        """Block until the token fires."""
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled})"


Fetcher = Callable[[S, CancellationToken], Awaitable[D]]


class AsyncResource(Generic[S, D]):
    """Reactive async fetch with stale-while-revalidate state.

    Usage:
        coin = Cell("ETH")

        async def fetch_meta(name, token):
            meta = await client.meta(name)
            token.raise_if_cancelled()
            return meta

        meta = AsyncResource(coin.get, fetch_meta)
        meta.state.get()   # ResourceState(data=None, loading=True, error=None)
        coin.set(None)     # back to idle, the in-flight result is discarded

    Needs a running event loop (or an explicit `loop`) whenever a fetch
    starts.
    """

    def __init__(
        self,
        source_fn: Callable[[], S | None],
        fetcher: Fetcher[S, D],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._source_fn = source_fn
        self._fetcher = fetcher
        self._loop = loop
        self._generation = 0
        self._token: CancellationToken | None = None
        self._tasks: set[asyncio.Task] = set()
        self._disposed = False
        self.state: Cell[ResourceState[D]] = Cell(IDLE)
        self._tracker = effect(self._track_source)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _track_source(self) -> None:
        raw = self._source_fn()
        with untracked():
            self._transition(raw)

    def refetch(self) -> None:
        """Start a new fetch from the current source value, without tracking it."""
        if self._disposed:
            return
        with untracked():
            raw = self._source_fn()
            if not unwrap_source(raw)[0]:
                logger.warning("Refetch called but source is absent; resetting to idle")
            self._transition(raw)

    def _transition(self, raw: object) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None

        present, value = unwrap_source(raw)
        self._generation += 1
        if not present:
            if self.state.peek() != IDLE:
                self.state.set(IDLE)
            return

        generation = self._generation
        token = CancellationToken()
        self._token = token
        loop = self._loop or asyncio.get_running_loop()
        self.state.set(ResourceState(data=self.state.peek().data, loading=True))
        task = loop.create_task(self._run_fetch(generation, value, token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _is_current(self, generation: int) -> bool:
        return not self._disposed and generation == self._generation

    async def _run_fetch(self, generation: int, value: S, token: CancellationToken) -> None:
        try:
            data = await self._fetcher(value, token)
        except FetchCancelled:
            logger.debug("Fetch for generation %d cancelled", generation)
            return
        except Exception as exc:
            if not self._is_current(generation):
                logger.debug("Discarding stale failure from generation %d", generation)
                return
            logger.exception("Resource fetcher error")
            self._token = None
            self.state.set(ResourceState(error=exc))
            return

        if self._is_current(generation) and not token.cancelled:
            self._token = None
            self.state.set(ResourceState(data=data))
        else:
            logger.debug("Discarding stale result from generation %d", generation)

    async def join(self) -> None:
        """Wait until no fetch task of this resource is running."""
        pending = [task for task in self._tasks if not task.done()]
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = [task for task in self._tasks if not task.done()]

    def dispose(self) -> None:
        """Stop tracking the source and silence in-flight fetches. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        self._tracker.dispose()
        if self._token is not None:
            self._token.cancel()
            self._token = None
        self._generation += 1

    def __repr__(self) -> str:
        return f"AsyncResource(generation={self._generation}, state={self.state.peek()!r})"


def create_resource(
    source_fn: Callable[[], S | None],
    fetcher: Fetcher[S, D],
    *,
    loop: asyncio.AbstractEventLoop | None = None,
) -> AsyncResource[S, D]:
    """Factory alias for AsyncResource."""
    return AsyncResource(source_fn, fetcher, loop=loop)
