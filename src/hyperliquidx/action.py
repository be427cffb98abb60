"""Grouped writes.

Effects and computeds that read several cells should see a quote or an
order book change as one step. `batch()` and @action hold every
resulting re-run back until the outermost group closes.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, Iterator, ParamSpec, TypeVar

from hyperliquidx._tracking import begin_batch, end_batch

P = ParamSpec("P")
R = TypeVar("R")


@contextmanager
def batch() -> Iterator[None]:
    """Group the writes made inside the block.

    Usage:
        with batch():
            bid.set(3100.0)
            ask.set(3100.5)
        # a spread effect runs once here and sees both sides
    """
    begin_batch()
    try:
        yield
    finally:
        end_batch()


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator form of batch(): every call of fn is one group.

    Usage:
        @action
        def apply_book(levels):
            bid.set(levels[0][0]["px"])
            ask.set(levels[1][0]["px"])
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        with batch():
            return fn(*args, **kwargs)

    return wrapper
