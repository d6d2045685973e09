"""
Session storage protocols.

Defines interfaces for credential and upload-journal storage.
Follows Interface Segregation Principle (ISP).
"""
from typing import Protocol, Optional, runtime_checkable
from .models import Credential, JournalEntry

# Well-known persisted keys
TOKEN_KEY = 'google_drive_token'
TOKEN_EXPIRY_KEY = 'google_drive_token_expiry'


@runtime_checkable
class CredentialStorage(Protocol):
    """
    Protocol for credential storage implementations.

    Implementations persist the token and its absolute expiry under
    TOKEN_KEY and TOKEN_EXPIRY_KEY.
    """

    def load(self) -> Optional[Credential]:
        """
        Load the persisted credential.

        Returns:
            Credential if both keys are present, None otherwise
        """
        ...

    def save(self, credential: Credential) -> None:
        """
        Persist a credential, replacing any previous one.

        Args:
            credential: Credential to save
        """
        ...

    def delete(self) -> None:
        """
        Delete the persisted credential.
        """
        ...

    def close(self) -> None:
        """
        Close storage connection and release resources.
        """
        ...


@runtime_checkable
class SessionJournal(Protocol):
    """
    Protocol for persisting open resumable sessions across restarts.
    """

    def get_upload(self, fingerprint: str) -> Optional[JournalEntry]:
        """Look up an open session by file fingerprint."""
        ...

    def put_upload(self, entry: JournalEntry) -> None:
        """Record an open session."""
        ...

    def remove_upload(self, fingerprint: str) -> None:
        """Forget a session (no-op if absent)."""
        ...
