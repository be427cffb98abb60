"""Tests for AsyncResource: generation guarding, cancellation, disposal."""

import asyncio
import logging

import pytest

from hyperliquidx import (
    ABSENT,
    IDLE,
    AsyncResource,
    CancellationToken,
    Cell,
    FetchCancelled,
    Present,
    ResourceState,
    create_resource,
    effect,
)
from hyperliquidx.resource import unwrap_source


class ControlledFetcher:
    """Fetcher whose calls stay pending until the test settles them."""

    def __init__(self):
        self.calls = []

    async def __call__(self, source, token):
        future = asyncio.get_running_loop().create_future()
        self.calls.append((source, token, future))
        return await future

    def resolve(self, index, value):
        self.calls[index][2].set_result(value)

    def reject(self, index, error):
        self.calls[index][2].set_exception(error)

    @property
    def sources(self):
        return [source for source, _, _ in self.calls]


async def _settle():
    """Let freshly created fetch tasks reach their first await."""
    for _ in range(3):
        await asyncio.sleep(0)


class TestUnwrapSource:
    @pytest.mark.parametrize("raw", [None, False, ABSENT])
    def test_absent_values(self, raw):
        assert unwrap_source(raw) == (False, None)

    @pytest.mark.parametrize("raw", [0, 0.0, "", [], "ETH"])
    def test_falsy_values_are_present(self, raw):
        assert unwrap_source(raw) == (True, raw)

    def test_present_wrapper(self):
        assert unwrap_source(Present(None)) == (True, None)
        assert unwrap_source(Present(False)) == (True, False)


class TestCancellationToken:
    def test_cancel(self):
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()  # no-op
        token.cancel()
        token.cancel()
        assert token.cancelled
        with pytest.raises(FetchCancelled):
            token.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_wait(self):
        token = CancellationToken()
        waiter = asyncio.ensure_future(token.wait())
        await asyncio.sleep(0)
        assert not waiter.done()
        token.cancel()
        await asyncio.wait_for(waiter, timeout=1)

    @pytest.mark.asyncio
    async def test_wait_after_cancel_returns(self):
        token = CancellationToken()
        token.cancel()
        await asyncio.wait_for(token.wait(), timeout=1)


class TestLifecycle:
    def test_starts_idle_with_absent_source(self):
        fetcher = ControlledFetcher()
        resource = AsyncResource(lambda: None, fetcher)
        assert resource.state.get() == IDLE
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_loading_then_success(self):
        fetcher = ControlledFetcher()
        resource = AsyncResource(lambda: "ETH", fetcher)
        assert resource.state.get() == ResourceState(loading=True)

        await _settle()
        assert fetcher.sources == ["ETH"]
        fetcher.resolve(0, {"px": 1})
        await resource.join()

        assert resource.state.get() == ResourceState(data={"px": 1})

    @pytest.mark.asyncio
    async def test_failure_sets_error_and_clears_data(self, caplog):
        source = Cell("a")
        fetcher = ControlledFetcher()
        resource = AsyncResource(source.get, fetcher)
        await _settle()
        fetcher.resolve(0, "data-a")
        await resource.join()

        resource.refetch()
        await _settle()
        error = RuntimeError("boom")
        with caplog.at_level(logging.ERROR, logger="hyperliquidx.resource"):
            fetcher.reject(1, error)
            await resource.join()

        state = resource.state.get()
        assert state.data is None
        assert state.error is error
        assert state.loading is False
        assert "Resource fetcher error" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_is_not_retried(self):
        fetcher = ControlledFetcher()
        resource = AsyncResource(lambda: "a", fetcher)
        await _settle()
        fetcher.reject(0, ValueError("nope"))
        await resource.join()
        await _settle()
        assert len(fetcher.calls) == 1
        assert isinstance(resource.state.get().error, ValueError)

    @pytest.mark.asyncio
    async def test_zero_is_a_present_source(self):
        fetcher = ControlledFetcher()
        resource = AsyncResource(lambda: 0, fetcher)
        await _settle()
        assert fetcher.sources == [0]
        assert resource.state.get().loading is True

    @pytest.mark.asyncio
    async def test_present_wrapper_passes_none_through(self):
        fetcher = ControlledFetcher()
        AsyncResource(lambda: Present(None), fetcher)
        await _settle()
        assert fetcher.sources == [None]

    @pytest.mark.asyncio
    async def test_factory_alias(self):
        fetcher = ControlledFetcher()
        resource = create_resource(lambda: "x", fetcher)
        assert isinstance(resource, AsyncResource)
        await _settle()
        fetcher.resolve(0, 1)
        await resource.join()
        assert resource.state.get().data == 1


class TestRaceFreedom:
    @pytest.mark.asyncio
    async def test_later_source_wins_when_earlier_fetch_finishes_last(self):
        source = Cell("a")
        fetcher = ControlledFetcher()
        resource = AsyncResource(source.get, fetcher)
        await _settle()
        source.set("b")
        await _settle()
        assert fetcher.sources == ["a", "b"]

        fetcher.resolve(1, "result-b")
        await asyncio.sleep(0)
        fetcher.resolve(0, "result-a")
        await resource.join()

        assert resource.state.get() == ResourceState(data="result-b")

    @pytest.mark.asyncio
    async def test_timed_fetches(self):
        delays = {"a": 0.1, "b": 0.01}

        async def fetch(name, token):
            await asyncio.sleep(delays[name])
            return f"result-{name}"

        source = Cell("a")
        resource = AsyncResource(source.get, fetch)
        source.set("b")
        await resource.join()

        assert resource.state.get().data == "result-b"

    @pytest.mark.asyncio
    async def test_stale_failure_is_discarded(self):
        source = Cell("a")
        fetcher = ControlledFetcher()
        resource = AsyncResource(source.get, fetcher)
        await _settle()
        source.set("b")
        await _settle()

        fetcher.resolve(1, "result-b")
        fetcher.reject(0, RuntimeError("late failure from a"))
        await resource.join()

        assert resource.state.get() == ResourceState(data="result-b")

    @pytest.mark.asyncio
    async def test_previous_token_is_cancelled_on_new_fetch(self):
        source = Cell("a")
        fetcher = ControlledFetcher()
        AsyncResource(source.get, fetcher)
        await _settle()
        first_token = fetcher.calls[0][1]
        assert not first_token.cancelled

        source.set("b")
        assert first_token.cancelled

    @pytest.mark.asyncio
    async def test_generation_increments(self):
        source = Cell("a")
        fetcher = ControlledFetcher()
        resource = AsyncResource(source.get, fetcher)
        assert resource.generation == 1
        source.set("b")
        assert resource.generation == 2
        resource.refetch()
        assert resource.generation == 3


class TestCancellation:
    @pytest.mark.asyncio
    async def test_fetch_cancelled_is_not_an_error(self):
        async def fetch(name, token):
            await token.wait()
            token.raise_if_cancelled()

        source = Cell("a")
        resource = AsyncResource(source.get, fetch)
        await _settle()
        source.set(None)
        await resource.join()

        assert resource.state.get() == IDLE

    @pytest.mark.asyncio
    async def test_asyncio_cancelled_error_is_not_an_error(self):
        async def fetch(name, token):
            if name == "a":
                raise asyncio.CancelledError()
            return "ok"

        source = Cell("a")
        resource = AsyncResource(source.get, fetch)
        await resource.join()

        state = resource.state.get()
        assert state.error is None
        assert state.loading is True

    @pytest.mark.asyncio
    async def test_result_of_cancelled_token_is_discarded(self):
        source = Cell("a")
        fetcher = ControlledFetcher()
        resource = AsyncResource(source.get, fetcher)
        await _settle()
        fetcher.calls[0][1].cancel()
        fetcher.resolve(0, "ignored")
        await resource.join()

        assert resource.state.get() == ResourceState(loading=True)


class TestAbsence:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("absent", [None, False, ABSENT])
    async def test_absent_source_resets_immediately(self, absent):
        source = Cell("a")
        fetcher = ControlledFetcher()
        resource = AsyncResource(source.get, fetcher)
        await _settle()

        source.set(absent)
        assert resource.state.get() == IDLE

        fetcher.resolve(0, "late")
        await resource.join()
        assert resource.state.get() == IDLE

    @pytest.mark.asyncio
    async def test_absent_source_cancels_token(self):
        source = Cell("a")
        fetcher = ControlledFetcher()
        AsyncResource(source.get, fetcher)
        await _settle()
        source.set(None)
        assert fetcher.calls[0][1].cancelled

    @pytest.mark.asyncio
    async def test_reset_does_not_renotify_when_already_idle(self):
        source = Cell("a")
        flag = Cell(0)
        fetcher = ControlledFetcher()
        resource = AsyncResource(lambda: (flag.get(), source.get())[1], fetcher)
        source.set(None)
        log = []
        effect(lambda: log.append(resource.state.get()))
        flag.set(1)  # source re-evaluates, still absent
        assert log == [IDLE]

    @pytest.mark.asyncio
    async def test_refetch_with_absent_source_resets(self, caplog):
        holder = {"coin": "a"}  # plain dict: only refetch() sees changes
        fetcher = ControlledFetcher()
        resource = AsyncResource(lambda: holder["coin"], fetcher)
        await _settle()
        fetcher.resolve(0, "data")
        await resource.join()

        holder["coin"] = None
        with caplog.at_level(logging.WARNING, logger="hyperliquidx.resource"):
            resource.refetch()

        assert resource.state.get() == IDLE
        assert "source is absent" in caplog.text

    @pytest.mark.asyncio
    async def test_refetch_reads_current_source(self):
        holder = {"coin": "a"}
        fetcher = ControlledFetcher()
        resource = AsyncResource(lambda: holder["coin"], fetcher)
        holder["coin"] = "b"
        resource.refetch()
        await _settle()
        assert fetcher.sources == ["a", "b"]


class TestStaleWhileRevalidate:
    @pytest.mark.asyncio
    async def test_previous_data_survives_loading(self):
        source = Cell("a")
        fetcher = ControlledFetcher()
        resource = AsyncResource(source.get, fetcher)
        await _settle()
        fetcher.resolve(0, "data-a")
        await resource.join()

        source.set("b")
        assert resource.state.get() == ResourceState(data="data-a", loading=True)

        await _settle()
        fetcher.resolve(1, "data-b")
        await resource.join()
        assert resource.state.get() == ResourceState(data="data-b")

    @pytest.mark.asyncio
    async def test_loading_clears_previous_error(self):
        source = Cell("a")
        fetcher = ControlledFetcher()
        resource = AsyncResource(source.get, fetcher)
        await _settle()
        fetcher.reject(0, RuntimeError("boom"))
        await resource.join()

        resource.refetch()
        assert resource.state.get() == ResourceState(loading=True)


class TestDispose:
    @pytest.mark.asyncio
    async def test_in_flight_result_is_silent_after_dispose(self):
        fetcher = ControlledFetcher()
        resource = AsyncResource(lambda: "a", fetcher)
        await _settle()
        resource.dispose()

        fetcher.resolve(0, "late")
        await resource.join()
        assert resource.state.get() == ResourceState(loading=True)
        assert fetcher.calls[0][1].cancelled

    @pytest.mark.asyncio
    async def test_in_flight_failure_is_silent_after_dispose(self):
        fetcher = ControlledFetcher()
        resource = AsyncResource(lambda: "a", fetcher)
        await _settle()
        resource.dispose()

        fetcher.reject(0, RuntimeError("late"))
        await resource.join()
        assert resource.state.get().error is None

    @pytest.mark.asyncio
    async def test_source_changes_after_dispose_are_ignored(self):
        source = Cell("a")
        fetcher = ControlledFetcher()
        resource = AsyncResource(source.get, fetcher)
        resource.dispose()
        resource.dispose()  # idempotent
        source.set("b")
        resource.refetch()
        await _settle()

        assert fetcher.sources == ["a"]
        assert resource.disposed
