"""Effects: side effects triggered by cell changes.

Unlike Computed (lazy, evaluated on read), an Effect eagerly re-runs its
function whenever a cell it read last time changes. Each run executes
inside a batch: writes performed by the body propagate only after the
body returns, so two effect bodies never interleave.

effect_when_defined() builds on Effect: the callback fires only once every
tracked cell holds a non-None value, and whatever cleanup it returned runs
before the next invocation and on disposal.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

from hyperliquidx._tracking import begin_batch, current_derivation, end_batch, untracked
from hyperliquidx.action import batch

Cleanup = Callable[[], None]


class Effect:
    """A reactive side effect that re-runs when its dependencies change."""

    __slots__ = ("_fn", "_dependencies", "_disposed")

    def __init__(self, fn: Callable[[], None]) -> None:
        self._fn = fn
        self._dependencies: set = set()
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _run(self) -> None:
        """Re-evaluate the function, re-tracking dependencies."""
        if self._disposed:
            return

        self._untrack()
        begin_batch()
        try:
            token = current_derivation.set(self)
            try:
                self._fn()
            finally:
                current_derivation.reset(token)
        finally:
            end_batch()

    def _untrack(self) -> None:
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

    def dispose(self) -> None:
        """Stop this effect. Safe to call more than once."""
        self._disposed = True
        self._untrack()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Effect({getattr(self._fn, '__name__', 'fn')}, {state})"


def effect(fn: Callable[[], None]) -> Effect:
    """Run fn immediately, then again whenever a cell it read changes.

    Returns the Effect; call .dispose() to stop it.

    Usage:
        mid = Cell(None)
        log = []

        e = effect(lambda: log.append(mid.get()))
        # log == [None]
        mid.set(3100.5)
        # log == [None, 3100.5]
        e.dispose()
    """
    e = Effect(fn)
    e._run()
    return e


class DefinedEffect:
    """Runs a callback only while every tracked cell holds a non-None value.

    The callback may return a cleanup function. That cleanup runs right
    before the next round (defined or not) and on disposal, so at most one
    side effect from this instance is live at any time.
    """

    __slots__ = ("_cells", "_callback", "_cleanup", "_effect")

    def __init__(self, cells: Sequence[Any], callback: Callable[..., Cleanup | None]) -> None:
        self._cells = tuple(cells)
        self._callback = callback
        self._cleanup: Cleanup | None = None
        self._effect = effect(self._round)

    @property
    def disposed(self) -> bool:
        return self._effect.disposed

    def _round(self) -> None:
        self._run_cleanup()

        values = [cell.get() for cell in self._cells]
        if any(value is None for value in values):
            return

        # Only the listed cells are dependencies, not what the callback reads.
        with untracked():
            result = self._callback(*values)
        self._cleanup = result if callable(result) else None

    def _run_cleanup(self) -> None:
        cleanup, self._cleanup = self._cleanup, None
        if cleanup is not None:
            with untracked():
                cleanup()

    def dispose(self) -> None:
        """Run the pending cleanup, then stop tracking. Idempotent."""
        if self._effect.disposed:
            return
        # Writes made by the cleanup must not re-trigger this instance.
        with batch():
            self._run_cleanup()
            self._effect.dispose()


def effect_when_defined(
    cells: Sequence[Any], callback: Callable[..., Cleanup | None]
) -> DefinedEffect:
    """Create a DefinedEffect over `cells`. Call .dispose() to stop it.

    Usage:
        coin = Cell(None)
        price = Cell(None)

        def show(c, p):
            print(f"{c} @ {p}")
            return lambda: print("clear")

        handle = effect_when_defined([coin, price], show)
        coin.set("ETH")      # nothing yet, price is None
        price.set(3100.5)    # prints "ETH @ 3100.5"
        handle.dispose()     # prints "clear"
    """
    return DefinedEffect(cells, callback)
