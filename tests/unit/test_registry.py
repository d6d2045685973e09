"""Tests for cancel tokens and the upload registry."""
import asyncio

import pytest

from drivepush.core.exceptions import UploadCancelled
from drivepush.core.upload import CancelToken, UploadRegistry
from drivepush.core.upload.registry import guarded


class TestCancelToken:
    """Test suite for CancelToken."""

    @pytest.mark.asyncio
    async def test_race_returns_result(self):
        token = CancelToken("k")

        async def work():
            return 42

        assert await token.race(work()) == 42

    @pytest.mark.asyncio
    async def test_race_already_cancelled(self):
        """Test racing a fired token never starts the work."""
        token = CancelToken("k")
        token.cancel()
        started = []

        async def work():
            started.append(True)

        with pytest.raises(UploadCancelled):
            await token.race(work())
        assert started == []

    @pytest.mark.asyncio
    async def test_cancel_aborts_pending_work(self):
        """Test cancel() interrupts the in-flight awaitable."""
        token = CancelToken("k")
        aborted = asyncio.Event()

        async def hang():
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                aborted.set()
                raise

        task = asyncio.create_task(token.race(hang()))
        await asyncio.sleep(0.01)
        token.cancel()

        with pytest.raises(UploadCancelled) as exc_info:
            await asyncio.wait_for(task, 1)
        assert exc_info.value.upload_key == "k"
        assert aborted.is_set()

    def test_raise_if_cancelled(self):
        token = CancelToken()
        token.raise_if_cancelled()
        token.cancel()

        assert token.cancelled
        with pytest.raises(UploadCancelled):
            token.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_guarded_without_token(self):
        async def work():
            return "plain"

        assert await guarded(None, work()) == "plain"


class TestUploadRegistry:
    """Test suite for UploadRegistry."""

    @pytest.fixture
    def registry(self):
        return UploadRegistry()

    def test_register_and_cancel(self, registry):
        token = CancelToken("a")
        registry.register("a", token)

        assert "a" in registry
        assert registry.cancel("a") is True
        assert token.cancelled
        assert "a" not in registry

    def test_double_cancel_is_noop(self, registry):
        """Test cancelling twice (or an unknown key) does nothing."""
        registry.register("a", CancelToken("a"))

        assert registry.cancel("a") is True
        assert registry.cancel("a") is False
        assert registry.cancel("missing") is False

    def test_register_replaces(self, registry):
        """Test one live entry per key."""
        first, second = CancelToken("a"), CancelToken("a")
        registry.register("a", first)
        registry.register("a", second)

        assert len(registry) == 1
        assert registry.get("a") is second

    def test_deregister_only_own_entry(self, registry):
        """Test a finished upload does not drop a newer entry with its key."""
        first, second = CancelToken("a"), CancelToken("a")
        registry.register("a", first)
        registry.register("a", second)

        assert registry.deregister("a", first) is False
        assert registry.get("a") is second
        assert registry.deregister("a", second) is True
        assert len(registry) == 0

    def test_cancel_all(self, registry):
        tokens = [CancelToken(k) for k in ("a", "b", "c")]
        for token in tokens:
            registry.register(token.key, token)

        assert registry.cancel_all() == 3
        assert all(t.cancelled for t in tokens)
        assert registry.active_keys() == []
