"""
In-memory session storage implementation.

Provides non-persistent storage for testing and temporary use.
"""
from typing import Dict, Optional

from .models import Credential, JournalEntry
from .protocols import TOKEN_KEY, TOKEN_EXPIRY_KEY


class MemoryStorage:
    """
    In-memory session storage.

    Keeps the same two-key layout as SQLiteStorage so tests can seed
    raw values. Data is lost when the object is destroyed.

    Example:
        >>> storage = MemoryStorage()
        >>> storage.save(credential)
        >>> loaded = storage.load()
    """

    def __init__(self):
        """Initialize memory storage."""
        self.values: Dict[str, str] = {}
        self.uploads: Dict[str, JournalEntry] = {}

    def load(self) -> Optional[Credential]:
        token = self.values.get(TOKEN_KEY)
        expiry = self.values.get(TOKEN_EXPIRY_KEY)
        if not token or expiry is None:
            return None
        return Credential(token=token, expires_at=float(expiry))

    def save(self, credential: Credential) -> None:
        self.values[TOKEN_KEY] = credential.token
        self.values[TOKEN_EXPIRY_KEY] = repr(credential.expires_at)

    def delete(self) -> None:
        self.values.pop(TOKEN_KEY, None)
        self.values.pop(TOKEN_EXPIRY_KEY, None)

    def get_upload(self, fingerprint: str) -> Optional[JournalEntry]:
        return self.uploads.get(fingerprint)

    def put_upload(self, entry: JournalEntry) -> None:
        self.uploads[entry.fingerprint] = entry

    def remove_upload(self, fingerprint: str) -> None:
        self.uploads.pop(fingerprint, None)

    def close(self) -> None:
        """Close storage (no-op for memory storage)."""
        pass

    def __enter__(self) -> 'MemoryStorage':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
