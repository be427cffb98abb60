"""Reactive cells: state that tracks its readers.

A Cell read inside a Computed or Effect evaluation registers itself as a
dependency. Writing a different value schedules every dependent for
re-evaluation, synchronously, in the same tick.

Computed cells are lazy: they re-evaluate on the next read after a
dependency changed, and forward the invalidation to their own readers.

Thread safety: call set_scheduler() once from the event-loop thread. After
that, any .set() from another thread (e.g. the SDK websocket thread) is
marshaled. Same-thread writes remain synchronous.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

from hyperliquidx._tracking import current_derivation, schedule

T = TypeVar("T")

_UNSET = object()

# ─── Auto-marshal ────────────────────────────────────────────────────────────
_scheduler: Callable[[Callable[[], None]], object] | None = None
_scheduler_thread: threading.Thread | None = None


def set_scheduler(scheduler: Callable[[Callable[[], None]], object] | None) -> None:
    """Set the global scheduler for cross-thread cell writes.

    Call once from the event-loop thread:
        hyperliquidx.set_scheduler(loop.call_soon_threadsafe)

    Pass None to go back to direct writes from any thread.
    """
    global _scheduler, _scheduler_thread
    _scheduler = scheduler
    _scheduler_thread = threading.current_thread() if scheduler is not None else None


def marshal(fn: Callable[[], None]) -> None:
    """Call fn on the scheduler thread: inline there, queued from anywhere else."""
    if _scheduler is not None and threading.current_thread() is not _scheduler_thread:
        _scheduler(fn)
    else:
        fn()


class Cell(Generic[T]):
    """A single reactive value with automatic dependency tracking."""

    __slots__ = ("_value", "_observers")

    def __init__(self, value: T) -> None:
        self._value = value
        self._observers: dict = {}

    def get(self) -> T:
        """Read the value. If inside a derivation, registers the dependency."""
        derivation = current_derivation.get()
        if derivation is not None:
            self._observers[derivation] = None
            derivation._dependencies.add(self)
        return self._value

    def peek(self) -> T:
        """Read the value without registering a dependency."""
        return self._value

    def set(self, value: T) -> None:
        """Write a new value. Marshals writes coming from other threads."""
        marshal(lambda: self._set_direct(value))

    def _set_direct(self, value: T) -> None:
        old = self._value
        if old is not value and old != value:
            self._value = value
            self._notify()

    def _notify(self) -> None:
        for observer in list(self._observers):
            schedule(observer)

    def _remove_observer(self, observer) -> None:
        self._observers.pop(observer, None)

    def __repr__(self) -> str:
        return f"Cell({self._value!r})"


class Computed(Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ("_fn", "_cached", "_dirty", "_dependencies", "_observers")

    def __init__(self, fn: Callable[[], T]) -> None:
        self._fn = fn
        self._cached: object = _UNSET
        self._dirty = True
        self._dependencies: set = set()
        self._observers: dict = {}

    def get(self) -> T:
        """Read the computed value. Recomputes if dirty."""
        derivation = current_derivation.get()
        if derivation is not None:
            self._observers[derivation] = None
            derivation._dependencies.add(self)

        if self._dirty:
            self._recompute()
        return self._cached  # type: ignore[return-value]

    def peek(self) -> T:
        token = current_derivation.set(None)
        try:
            return self.get()
        finally:
            current_derivation.reset(token)

    def _recompute(self) -> None:
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

        token = current_derivation.set(self)
        try:
            self._cached = self._fn()
        finally:
            current_derivation.reset(token)
        self._dirty = False

    def _run(self) -> None:
        """Mark dirty and propagate; recomputation waits for the next read."""
        if not self._dirty:
            self._dirty = True
            for observer in list(self._observers):
                schedule(observer)

    def _remove_observer(self, observer) -> None:
        self._observers.pop(observer, None)

    def dispose(self) -> None:
        """Disconnect from all dependencies. The computed becomes inert."""
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()
        self._observers.clear()
        self._dirty = True
        self._cached = _UNSET

    def __repr__(self) -> str:
        state = "dirty" if self._dirty else f"cached={self._cached!r}"
        return f"Computed({getattr(self._fn, '__name__', 'fn')}, {state})"


def computed(fn: Callable[[], T]) -> Computed[T]:
    """Decorator/factory to create a Computed from a function.

    Usage:
        price = Cell(10.0)

        @computed
        def doubled():
            return price.get() * 2
    """
    return Computed(fn)
