"""
Upload registry and cancellation tokens.

Every upload carries a CancelToken; each network call of the upload is
raced against it. The registry maps caller-supplied keys to live tokens
so any upload can be aborted individually, or all of them at once.
"""
import asyncio
from typing import Awaitable, Dict, List, Optional, TypeVar

from ..exceptions import UploadCancelled
from ..logging import get_logger

T = TypeVar('T')

logger = get_logger('drivepush.upload.registry')


class CancelToken:
    """
    Cooperative-but-forced cancellation signal for one upload.

    ``race`` resolves to the awaited result, or raises UploadCancelled
    the instant ``cancel`` is called; the losing request task is
    cancelled, which aborts the underlying HTTP exchange.
    """

    def __init__(self, key: Optional[str] = None):
        self.key = key
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise UploadCancelled(self.key)

    async def race(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token fires first.

        Raises:
            UploadCancelled: If the token fired before the awaitable finished
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise UploadCancelled(self.key)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task in done:
            waiter.cancel()
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Aborted request for {self.key} ended with: {e}")
        raise UploadCancelled(self.key)


async def guarded(cancel_token: Optional[CancelToken], awaitable: Awaitable[T]) -> T:
    """Await ``awaitable``, raced against ``cancel_token`` when one is given."""
    if cancel_token is None:
        return await awaitable
    return await cancel_token.race(awaitable)


class UploadRegistry:
    """
    Tracks in-flight uploads by caller-supplied key.

    At most one live entry exists per key: registering a key again
    replaces the previous entry.

    Example:
        >>> registry = UploadRegistry()
        >>> registry.register("key-1", token)
        >>> registry.cancel("key-1")
        True
    """

    def __init__(self):
        self._entries: Dict[str, CancelToken] = {}

    def register(self, key: str, token: CancelToken) -> None:
        """Track ``token`` under ``key``."""
        previous = self._entries.get(key)
        if previous is not None and previous is not token:
            logger.warning(f"Upload key {key} re-registered; replacing previous entry")
        self._entries[key] = token

    def deregister(self, key: str, token: Optional[CancelToken] = None) -> bool:
        """
        Remove ``key``.

        When ``token`` is given the entry is only removed if it still
        belongs to that token, so a finished upload never drops the entry
        of a newer upload that reused its key.

        Returns:
            True if an entry was removed
        """
        current = self._entries.get(key)
        if current is None or (token is not None and current is not token):
            return False
        del self._entries[key]
        return True

    def get(self, key: str) -> Optional[CancelToken]:
        return self._entries.get(key)

    def cancel(self, key: str) -> bool:
        """
        Abort the upload registered under ``key``.

        Returns:
            True if an upload was cancelled, False if the key was absent
        """
        token = self._entries.pop(key, None)
        if token is None:
            return False
        token.cancel()
        logger.info(f"Aborted upload: {key}")
        return True

    def cancel_all(self) -> int:
        """
        Abort every live upload and clear the registry.

        Returns:
            Number of uploads cancelled
        """
        entries = list(self._entries.items())
        self._entries.clear()
        for key, token in entries:
            token.cancel()
            logger.info(f"Aborted upload on sign-out: {key}")
        return len(entries)

    def active_keys(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
