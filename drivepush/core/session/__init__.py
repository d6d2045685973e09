"""
Session management module.

Provides persistent storage for the delegated-access credential and,
optionally, for open resumable upload sessions.
"""
from .protocols import CredentialStorage, SessionJournal, TOKEN_KEY, TOKEN_EXPIRY_KEY
from .models import Credential, JournalEntry
from .sqlite_session import SQLiteStorage
from .memory_session import MemoryStorage

__all__ = [
    'CredentialStorage',
    'SessionJournal',
    'TOKEN_KEY',
    'TOKEN_EXPIRY_KEY',
    'Credential',
    'JournalEntry',
    'SQLiteStorage',
    'MemoryStorage',
]
