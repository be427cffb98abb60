"""Read tracking and write batching shared by every reactive primitive.

`current_derivation` names the Computed or Effect being evaluated; any
Cell.get() that happens meanwhile records itself as one of its inputs.

A write schedules every reader of the written cell. Outside a batch the
readers run right away. Inside one (an explicit `batch()`, an @action,
or any effect body) they queue up and run when the outermost scope
closes, in the order they were first queued.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from hyperliquidx.cell import Computed
    from hyperliquidx.effect import Effect

    Derivation = Computed | Effect

current_derivation: contextvars.ContextVar[Derivation | None] = contextvars.ContextVar(
    "current_derivation", default=None
)

_depth: int = 0
# dict as an ordered set: first invalidation decides the run order
_pending: dict[Derivation, None] = {}


def begin_batch() -> None:
    global _depth
    _depth += 1


def end_batch() -> None:
    """Close one batch scope; closing the outermost runs the queue."""
    global _depth
    _depth -= 1
    if _depth == 0:
        _drain()


def schedule(derivation: Derivation) -> None:
    if _depth:
        _pending[derivation] = None
        return
    derivation._run()


def _drain() -> None:
    # A queued derivation may write cells and queue more; keep going until quiet.
    while _pending:
        wave = list(_pending)
        _pending.clear()
        for derivation in wave:
            derivation._run()


@contextmanager
def untracked() -> Iterator[None]:
    """Read cells inside this block without registering dependencies."""
    token = current_derivation.set(None)
    try:
        yield
    finally:
        current_derivation.reset(token)


def get_pending_count() -> int:
    """How many derivations are queued in the open batch."""
    return len(_pending)
