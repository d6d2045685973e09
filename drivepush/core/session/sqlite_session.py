"""
SQLite session storage implementation.

Provides persistent credential and upload-journal storage using a local
SQLite database file.
"""
import sqlite3
import threading
from pathlib import Path
from typing import Optional, Union
from contextlib import contextmanager

from .models import Credential, JournalEntry
from .protocols import TOKEN_KEY, TOKEN_EXPIRY_KEY


class SQLiteStorage:
    """
    SQLite-based session storage.

    Stores the credential under two well-known keys of a key/value table
    and open resumable sessions in an ``uploads`` table.
    Thread-safe implementation with a single shared connection.

    Example:
        >>> storage = SQLiteStorage("drive")
        >>> # Creates drive.session file
        >>>
        >>> storage.save(credential)
        >>> loaded = storage.load()
    """

    EXTENSION = '.session'
    SCHEMA_VERSION = 1

    def __init__(
        self,
        session_name: Union[str, Path],
        base_path: Optional[Path] = None
    ):
        """
        Initialize SQLite storage.

        Args:
            session_name: Session name (without extension) or full path
            base_path: Optional base directory for session files
        """
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None

        if isinstance(session_name, Path) or session_name.endswith(self.EXTENSION):
            self._path = Path(session_name)
        elif base_path:
            self._path = base_path / f"{session_name}{self.EXTENSION}"
        else:
            self._path = Path(f"{session_name}{self.EXTENSION}")

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @property
    def path(self) -> Path:
        """Get session file path."""
        return self._path

    @contextmanager
    def _get_connection(self):
        """Get thread-safe database connection."""
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(
                    str(self._path),
                    check_same_thread=False
                )
                self._conn.row_factory = sqlite3.Row
            yield self._conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS version (
                    version INTEGER PRIMARY KEY
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS uploads (
                    fingerprint TEXT PRIMARY KEY,
                    session_uri TEXT NOT NULL,
                    total_size INTEGER NOT NULL,
                    content_type TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
            ''')

            cursor.execute('SELECT version FROM version LIMIT 1')
            if cursor.fetchone() is None:
                cursor.execute(
                    'INSERT INTO version (version) VALUES (?)',
                    (self.SCHEMA_VERSION,)
                )

            conn.commit()

    # Credential storage

    def load(self) -> Optional[Credential]:
        """
        Load the credential from the database.

        Returns:
            Credential if both keys exist and parse, None otherwise
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                'SELECT key, value FROM kv WHERE key IN (?, ?)',
                (TOKEN_KEY, TOKEN_EXPIRY_KEY)
            )
            values = {row['key']: row['value'] for row in cursor.fetchall()}

        token = values.get(TOKEN_KEY)
        expiry = values.get(TOKEN_EXPIRY_KEY)
        if not token or expiry is None:
            return None
        try:
            return Credential(token=token, expires_at=float(expiry))
        except ValueError:
            return None

    def save(self, credential: Credential) -> None:
        """
        Save the credential to the database.

        Args:
            credential: Credential to save
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.executemany(
                'INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)',
                [
                    (TOKEN_KEY, credential.token),
                    (TOKEN_EXPIRY_KEY, repr(credential.expires_at)),
                ]
            )
            conn.commit()

    def delete(self) -> None:
        """Delete the credential keys."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                'DELETE FROM kv WHERE key IN (?, ?)',
                (TOKEN_KEY, TOKEN_EXPIRY_KEY)
            )
            conn.commit()

    # Upload journal

    def get_upload(self, fingerprint: str) -> Optional[JournalEntry]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                'SELECT * FROM uploads WHERE fingerprint = ?',
                (fingerprint,)
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return JournalEntry(
                fingerprint=row['fingerprint'],
                session_uri=row['session_uri'],
                total_size=row['total_size'],
                content_type=row['content_type'],
                created_at=row['created_at'],
            )

    def put_upload(self, entry: JournalEntry) -> None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT OR REPLACE INTO uploads (
                    fingerprint, session_uri, total_size, content_type, created_at
                ) VALUES (?, ?, ?, ?, ?)
            ''', (
                entry.fingerprint,
                entry.session_uri,
                entry.total_size,
                entry.content_type,
                entry.created_at,
            ))
            conn.commit()

    def remove_upload(self, fingerprint: str) -> None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                'DELETE FROM uploads WHERE fingerprint = ?',
                (fingerprint,)
            )
            conn.commit()

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def delete_file(self) -> None:
        """Delete the session file completely."""
        self.close()
        if self._path.exists():
            self._path.unlink()

    def __enter__(self) -> 'SQLiteStorage':
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
