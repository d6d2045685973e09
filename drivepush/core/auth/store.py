"""
Credential store.

Single source of truth for "are we authorized". One instance is shared
by every upload of a client; re-authorization is serialized so that
concurrent uploads trigger it at most once.
"""
import asyncio
import time
from typing import Callable, Optional

from .authorizers import Authorizer
from ..exceptions import AuthRequired, DriveException
from ..logging import get_logger
from ..session import Credential, CredentialStorage

logger = get_logger('drivepush.auth')


class CredentialStore:
    """
    Owns the delegated-access credential and its persisted copy.

    Callers only ever ask for a valid credential (``ensure_valid``) or
    drop it (``invalidate``). An expired credential, in memory or on
    disk, is treated as absent and purged as soon as it is observed.

    Example:
        >>> store = CredentialStore(SQLiteStorage("drive"), authorizer)
        >>> credential = await store.ensure_valid()
        >>> headers = {'Authorization': credential.authorization}
    """

    # Treat tokens as expired this many seconds early
    EXPIRY_MARGIN = 300
    DEFAULT_LIFETIME = 3600

    def __init__(
        self,
        storage: CredentialStorage,
        authorizer: Optional[Authorizer] = None,
        clock: Callable[[], float] = time.time,
        expiry_margin: float = EXPIRY_MARGIN
    ):
        """
        Initialize credential store.

        Args:
            storage: Persistent credential storage
            authorizer: Token source used when no valid credential exists
            clock: Wall clock returning Unix time (injectable for tests)
            expiry_margin: Safety margin subtracted from token lifetimes
        """
        self._storage = storage
        self._authorizer = authorizer
        self._clock = clock
        self._expiry_margin = expiry_margin
        self._credential: Optional[Credential] = None
        self._lock = asyncio.Lock()
        self._authorization_count = 0

    @property
    def authorizer(self) -> Optional[Authorizer]:
        return self._authorizer

    @property
    def authorization_count(self) -> int:
        """Number of successful re-authorizations performed."""
        return self._authorization_count

    def peek(self) -> Optional[Credential]:
        """
        Return the current credential without re-authorizing.

        Loads from storage when nothing is cached; purges an expired
        credential.

        Returns:
            Valid credential or None
        """
        credential = self._credential
        if credential is None:
            credential = self._storage.load()
            if credential is None:
                return None

        now = self._clock()
        if not credential.is_valid(now):
            logger.info("Stored access token expired, clearing")
            self.invalidate()
            return None

        if self._credential is None:
            minutes = round(credential.remaining(now) / 60)
            logger.info(f"Restored access token from storage (expires in {minutes} minutes)")
        self._credential = credential
        return credential

    async def ensure_valid(self) -> Credential:
        """
        Return a valid credential, re-authorizing if needed.

        Returns:
            Valid credential

        Raises:
            AuthRequired: If no credential exists and authorization failed
        """
        credential = self.peek()
        if credential is not None:
            return credential

        async with self._lock:
            # Another upload may have re-authorized while we waited
            credential = self.peek()
            if credential is not None:
                return credential
            return await self._authorize()

    async def _authorize(self) -> Credential:
        if self._authorizer is None:
            raise AuthRequired("Not signed in and no authorizer is configured")

        logger.info("Requesting new access token")
        try:
            grant = await self._authorizer.authorize()
        except AuthRequired:
            raise
        except DriveException as e:
            raise AuthRequired(f"Authorization failed: {e}", e.status) from e
        except Exception as e:
            raise AuthRequired(f"Authorization failed: {e}") from e

        if not grant.access_token:
            raise AuthRequired("Authorization returned an empty token")

        lifetime = grant.expires_in or self.DEFAULT_LIFETIME
        expires_in = max(lifetime - self._expiry_margin, 0)
        credential = Credential(
            token=grant.access_token,
            expires_at=self._clock() + expires_in
        )
        self._credential = credential
        self._storage.save(credential)
        self._authorization_count += 1
        logger.info(f"Access token received, expires in {expires_in} seconds")
        return credential

    def invalidate(self) -> None:
        """Clear the in-memory and persisted credential."""
        self._credential = None
        self._storage.delete()
        logger.debug("Cleared saved token")

    async def revoke(self) -> None:
        """
        Revoke the current token remotely (best effort) and invalidate.
        """
        credential = self._credential or self._storage.load()
        try:
            if credential is not None and self._authorizer is not None:
                await self._authorizer.revoke(credential.token)
        except DriveException as e:
            logger.warning(f"Failed to revoke access token: {e}")
        finally:
            self.invalidate()
