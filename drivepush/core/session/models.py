"""
Session data models.

Contains data classes for persisted credential and upload state.
"""
import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Credential:
    """
    Delegated-access credential.

    Attributes:
        token: Opaque bearer token
        expires_at: Absolute expiry as Unix timestamp (seconds), already
            shortened by the store's safety margin
    """
    token: str
    expires_at: float

    def is_valid(self, now: Optional[float] = None) -> bool:
        """True while ``now`` is before the expiry instant."""
        if now is None:
            now = time.time()
        return bool(self.token) and now < self.expires_at

    def remaining(self, now: Optional[float] = None) -> float:
        """Seconds until expiry (never negative)."""
        if now is None:
            now = time.time()
        return max(0.0, self.expires_at - now)

    @property
    def authorization(self) -> str:
        """Value for the Authorization header."""
        return f"Bearer {self.token}"

    def __repr__(self) -> str:
        return f"Credential(token='***', expires_at={self.expires_at})"


@dataclass
class JournalEntry:
    """
    Persisted record of an open resumable upload session.

    Attributes:
        fingerprint: Identity of the (file, destination) pair
        session_uri: Resumable session handle
        total_size: Declared file size in bytes
        content_type: Declared MIME type
        created_at: Unix timestamp when the session was opened
    """
    fingerprint: str
    session_uri: str
    total_size: int
    content_type: str
    created_at: float = field(default_factory=time.time)
