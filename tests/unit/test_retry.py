"""Tests for the retry governor."""
import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from drivepush.core.api import RetryConfig, RetryGovernor, ExponentialBackoffStrategy
from drivepush.core.exceptions import (
    AuthDenied,
    AuthRequired,
    ChunkUploadError,
    NetworkError,
    UploadCancelled,
)
from drivepush.core.upload import CancelToken


class TestRetryConfig:
    """Test suite for RetryConfig."""

    def test_default_delays(self):
        """Test delays are 1s, 2s, 4s."""
        config = RetryConfig()

        assert [config.calculate_delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_custom_base_delay(self):
        """Test delays scale with base delay."""
        config = RetryConfig(base_delay=0.5)

        assert config.calculate_delay(3) == 2.0


class TestExponentialBackoffStrategy:
    """Test suite for ExponentialBackoffStrategy."""

    @pytest.fixture
    def strategy(self):
        return ExponentialBackoffStrategy()

    def test_retries_drive_errors(self, strategy):
        """Test transient Drive errors are retried."""
        assert strategy.should_retry(ChunkUploadError("boom", 503), 0)
        assert strategy.should_retry(NetworkError("reset"), 2)

    def test_stops_after_max_retries(self, strategy):
        """Test no retry after max_retries."""
        assert not strategy.should_retry(NetworkError("reset"), 3)

    @pytest.mark.parametrize("error", [
        UploadCancelled("k"),
        AuthDenied("denied", 401),
        AuthRequired("no token"),
    ])
    def test_terminal_errors(self, strategy, error):
        """Test cancellation and auth failures are never retried."""
        assert not strategy.should_retry(error, 0)

    def test_foreign_errors_not_retried(self, strategy):
        """Test programming errors propagate immediately."""
        assert not strategy.should_retry(KeyError("x"), 0)


class TestRetryGovernor:
    """Test suite for RetryGovernor."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, governor, sleeper):
        """Test a successful call runs once without sleeping."""
        fn = AsyncMock(return_value="ok")

        assert await governor.run(fn) == "ok"
        assert fn.await_count == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_fail_twice_then_succeed(self, governor, sleeper):
        """Test two failures then success: 3 calls, sleeps of 1s and 2s."""
        fn = AsyncMock(side_effect=[
            ChunkUploadError("503", 503),
            NetworkError("reset"),
            "done",
        ])

        assert await governor.run(fn) == "done"
        assert fn.await_count == 3
        assert sleeper.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_always_failing_raises_last_error(self, governor, sleeper):
        """Test exhaustion: 4 calls and the 4th error surfaces unchanged."""
        errors = [ChunkUploadError(f"failure {n}", 500 + n) for n in range(4)]
        fn = AsyncMock(side_effect=errors)

        with pytest.raises(ChunkUploadError) as exc_info:
            await governor.run(fn)

        assert exc_info.value is errors[3]
        assert fn.await_count == 4
        assert sleeper.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_terminal_error_not_retried(self, governor, sleeper):
        """Test AuthDenied propagates after a single call."""
        fn = AsyncMock(side_effect=AuthDenied("denied", 401))

        with pytest.raises(AuthDenied):
            await governor.run(fn)

        assert fn.await_count == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_listener_called_per_retry(self, sleeper):
        """Test on_retry fires before each retry."""
        listener = Mock()
        governor = RetryGovernor(sleep=sleeper).with_listener(listener)
        fn = AsyncMock(side_effect=[NetworkError("a"), NetworkError("b"), 1])

        await governor.run(fn)

        assert [c.args[0] for c in listener.call_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_cancelled_token_stops_attempts(self, governor):
        """Test a cancelled token prevents the first attempt."""
        token = CancelToken("k")
        token.cancel()
        fn = AsyncMock()

        with pytest.raises(UploadCancelled):
            await governor.run(fn, token)

        fn.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self):
        """Test cancelling while sleeping ends the retry loop."""
        token = CancelToken("k")
        governor = RetryGovernor(sleep=asyncio.sleep)
        fn = AsyncMock(side_effect=NetworkError("reset"))

        task = asyncio.create_task(governor.run(fn, token))
        await asyncio.sleep(0.05)
        token.cancel()

        with pytest.raises(UploadCancelled):
            await asyncio.wait_for(task, 1)
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_retry_logs_warning(self, governor, caplog):
        """Test each retry is logged as a warning."""
        fn = AsyncMock(side_effect=[NetworkError("reset"), "ok"])

        with caplog.at_level("WARNING", logger="drivepush.retry"):
            await governor.run(fn, description="chunk 0")

        assert "Retry 1 for chunk 0 after 1.0s" in caplog.text
