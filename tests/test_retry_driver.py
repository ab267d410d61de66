"""Tests for the retry driver (async, sync and decorator forms)"""

from __future__ import annotations

import asyncio
import threading
from unittest.mock import AsyncMock, Mock

import pytest

from fetchretry import (
    ClassificationError,
    ConfigurationError,
    RetryExhaustedError,
    RetryOptions,
    fetch_with_retry,
    fetch_with_retry_sync,
    run,
    set_default_fetch,
    with_retry,
)
from fetchretry.infrastructure import retry as retry_module


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    """Record backoff delays instead of sleeping"""
    recorded = []

    async def fake_async_sleep(seconds):
        recorded.append(seconds)

    monkeypatch.setattr(retry_module, "_async_sleep", fake_async_sleep)
    monkeypatch.setattr(retry_module, "_sleep", recorded.append)
    return recorded


@pytest.fixture(autouse=True)
def clear_default_fetch():
    yield
    set_default_fetch(None)


class TestFetchWithRetry:
    """Tests for the async driver"""

    @pytest.mark.asyncio
    async def test_success_resolves_immediately(self):
        on_retry = Mock()
        set_default_fetch(AsyncMock(return_value={"status": 200, "ok": True}))

        result = await fetch_with_retry({"on_retry": on_retry}, "https://example.test/")

        assert result == {"status": 200, "ok": True}
        on_retry.assert_not_called()

    @pytest.mark.asyncio
    async def test_408_is_retried_three_times(self, sleeps):
        """The default predicate declines at zero remaining, so the last response is returned"""
        calls = []
        fetch = AsyncMock(return_value={"status": 408, "ok": False})
        set_default_fetch(fetch)

        result = await fetch_with_retry(
            RetryOptions(retries=3, on_retry=lambda result, count: calls.append(count)),
            "https://example.test/408",
            method="GET",
        )

        assert result == {"status": 408, "ok": False}
        assert calls == [3, 2, 1]
        assert fetch.await_count == 4
        fetch.assert_awaited_with("https://example.test/408", method="GET")
        assert sleeps == [pytest.approx(2.0), pytest.approx(4.0), pytest.approx(8.0)]

    @pytest.mark.asyncio
    async def test_custom_fetch_without_retry_on_fails_fast(self):
        fetch = AsyncMock()

        with pytest.raises(ConfigurationError, match="retry_on"):
            await fetch_with_retry({"fetch_fn": fetch, "retries": 3}, "https://example.test/")

        fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_budget_bounds_calls(self):
        """retries=N allows at most N observer calls and N+1 requests"""
        fetch = AsyncMock(return_value="nope")
        on_retry = Mock()

        with pytest.raises(RetryExhaustedError) as exc_info:
            await fetch_with_retry(
                RetryOptions(
                    fetch_fn=fetch,
                    retries=4,
                    retry_on=lambda result, count: True,
                    on_retry=on_retry,
                )
            )

        assert fetch.await_count == 5
        assert on_retry.call_count == 4
        assert exc_info.value.outcome == "nope"
        assert exc_info.value.attempts == 5

    @pytest.mark.asyncio
    async def test_exception_outcome_not_retried_is_reraised(self):
        fetch = AsyncMock(side_effect=ValueError("bad request"))

        with pytest.raises(ValueError, match="bad request"):
            await fetch_with_retry(
                {"fetch_fn": fetch, "retry_on": lambda result, count: False}
            )

        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_transient_exception_then_success(self):
        set_default_fetch(AsyncMock(side_effect=[ConnectionError("reset"), {"ok": True}]))

        result = await fetch_with_retry(None, "https://example.test/")

        assert result == {"ok": True}

    @pytest.mark.asyncio
    async def test_exhausted_exception_is_reraised_unchanged(self):
        """Exhaustion and a plain failure look the same when the outcome is an exception"""
        error = ConnectionError("down")
        fetch = AsyncMock(side_effect=error)

        with pytest.raises(ConnectionError) as exc_info:
            await fetch_with_retry(
                {"fetch_fn": fetch, "retries": 2, "retry_on": lambda result, count: True}
            )

        assert exc_info.value is error
        assert fetch.await_count == 3

    @pytest.mark.asyncio
    async def test_classification_error_propagates(self):
        fetch = AsyncMock(return_value=42)
        set_default_fetch(fetch)

        with pytest.raises(ClassificationError):
            await fetch_with_retry({"retries": 3})

        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_plain_function_is_supported(self):
        fetch = Mock(side_effect=[{"ok": False}, {"ok": True}])

        result = await fetch_with_retry(
            {"fetch_fn": fetch, "retry_on": lambda result, count: not result["ok"]}
        )

        assert result == {"ok": True}
        assert fetch.call_count == 2

    @pytest.mark.asyncio
    async def test_randomized_delays_within_bounds(self, sleeps):
        fetch = AsyncMock(return_value={"ok": False})
        set_default_fetch(fetch)

        await fetch_with_retry({"retries": 3, "randomize": True, "max_timeout": 5.0})

        assert len(sleeps) == 3
        for delay, bound in zip(sleeps, [2.0, 4.0, 5.0]):
            assert 0.0 <= delay < bound

    @pytest.mark.asyncio
    async def test_zero_retries_makes_single_attempt(self):
        fetch = AsyncMock(return_value={"ok": False})
        set_default_fetch(fetch)

        result = await fetch_with_retry({"retries": 0})

        assert result == {"ok": False}
        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_invalid_options_fail_fast(self):
        with pytest.raises(ConfigurationError, match="retries"):
            await fetch_with_retry({"retries": -1})

        with pytest.raises(ConfigurationError, match="unknown"):
            await fetch_with_retry({"unknown": 1})

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_independent(self):
        async def flaky(name, failures):
            state.setdefault(name, 0)
            state[name] += 1
            return {"ok": state[name] > failures}

        state = {}
        set_default_fetch(flaky)

        first, second = await asyncio.gather(
            fetch_with_retry({"retries": 3}, "a", 2),
            fetch_with_retry({"retries": 3}, "b", 0),
        )

        assert first == {"ok": True}
        assert second == {"ok": True}
        assert state == {"a": 3, "b": 1}

    @pytest.mark.asyncio
    async def test_blocking_default_runs_off_the_event_loop(self):
        threads = []

        def blocking_fetch(url):
            threads.append(threading.get_ident())
            return {"ok": len(threads) > 1}

        set_default_fetch(blocking_fetch)

        result = await fetch_with_retry(None, "https://example.test/")

        assert result == {"ok": True}
        assert len(threads) == 2
        assert threading.get_ident() not in threads

    @pytest.mark.asyncio
    async def test_blocking_fetch_fn_is_called_inline(self):
        threads = []

        def fetch():
            threads.append(threading.get_ident())
            return "done"

        result = await fetch_with_retry({"fetch_fn": fetch, "retry_on": lambda result, count: False})

        assert result == "done"
        assert threads == [threading.get_ident()]

    @pytest.mark.asyncio
    async def test_run_takes_request_function(self):
        fetch = AsyncMock(return_value={"status": 201})

        result = await run({"retry_on": lambda result, count: False}, fetch, "x")

        assert result == {"status": 201}
        fetch.assert_awaited_once_with("x")


class TestFetchWithRetrySync:
    """Tests for the blocking driver"""

    def test_retries_until_ok(self, sleeps):
        fetch = Mock(side_effect=[{"status": 503}, {"status": 503}, {"status": 200}])

        result = fetch_with_retry_sync(
            {"fetch_fn": fetch, "retry_on": lambda result, count: result["status"] >= 500},
            "https://example.test/",
        )

        assert result == {"status": 200}
        assert sleeps == [pytest.approx(2.0), pytest.approx(4.0)]

    def test_rejects_coroutine_function(self):
        async def fetch():
            return {"ok": True}

        with pytest.raises(ConfigurationError, match="coroutine"):
            fetch_with_retry_sync({"fetch_fn": fetch, "retry_on": lambda result, count: False})


class TestWithRetry:
    """Tests for the decorator form"""

    def test_sync_function(self):
        fetch = Mock(side_effect=[{"ok": False}, {"ok": True}])

        @with_retry(retries=2, retry_on=lambda result, count: not result["ok"])
        def get_thing(thing_id):
            return fetch(thing_id)

        assert get_thing(7) == {"ok": True}
        fetch.assert_called_with(7)
        assert get_thing.__name__ == "get_thing"

    @pytest.mark.asyncio
    async def test_async_function(self):
        on_retry = Mock()

        @with_retry({"retry_on": lambda result, count: result < 3, "on_retry": on_retry})
        async def counter():
            state["n"] += 1
            return state["n"]

        state = {"n": 0}

        assert await counter() == 3
        assert on_retry.call_count == 2

    def test_missing_retry_on_fails_at_decoration(self):
        with pytest.raises(ConfigurationError):

            @with_retry(retries=2)
            def get_thing():
                return None
