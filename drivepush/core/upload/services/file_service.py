"""
File validation and reading services.

Single Responsibility: Each class handles one specific task.
"""
from pathlib import Path
from typing import Tuple, Optional, Union
import logging
import aiofiles


class FileValidator:
    """
    Validates files before upload.

    Responsibilities:
    - Check file existence
    - Verify file is not a directory
    - Get file size
    """

    def validate(self, file_path: Union[str, Path]) -> Tuple[Path, int]:
        """
        Validate a file for upload.

        Args:
            file_path: Path to the file

        Returns:
            Tuple of (validated Path, file size in bytes)

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If path is not a regular file
        """
        path = Path(file_path) if isinstance(file_path, str) else file_path

        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        if not path.is_file():
            raise ValueError(f"Path is not a file: {path}")

        return path, path.stat().st_size

    def validate_size(self, file_size: int, max_size: Optional[int] = None) -> None:
        """
        Validate file size.

        Args:
            file_size: File size in bytes
            max_size: Optional maximum allowed size

        Raises:
            ValueError: If size is negative or exceeds max size
        """
        if file_size < 0:
            raise ValueError(f"Invalid file size {file_size}")

        if max_size and file_size > max_size:
            raise ValueError(
                f"File size {file_size} exceeds maximum {max_size}"
            )


class AsyncFileReader:
    """
    Asynchronous range reader for a file on disk.

    Uses aiofiles for non-blocking I/O. The handle stays open for the
    whole transfer to avoid repeated open/close operations.
    """

    def __init__(self, file_path: Path, size: Optional[int] = None):
        """
        Initialize file reader.

        Args:
            file_path: Path to the file
            size: Known size (stat'ed when omitted)
        """
        self._path = file_path
        self._size = size if size is not None else file_path.stat().st_size
        self._logger = logging.getLogger('drivepush.upload.file')
        self._file_handle = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def size(self) -> int:
        return self._size

    @property
    def identity(self) -> str:
        """Stable identity used to recognise the same file after a restart."""
        stat = self._path.stat()
        return f"{self._path.resolve()}|{stat.st_size}|{stat.st_mtime_ns}"

    async def open(self) -> None:
        """Open the file for reading (idempotent)."""
        if self._file_handle is None:
            self._file_handle = await aiofiles.open(self._path, 'rb')

    async def close(self) -> None:
        """Close the currently open file."""
        if self._file_handle is not None:
            await self._file_handle.close()
            self._file_handle = None

    async def read_range(self, start: int, end: int) -> bytes:
        """
        Read bytes ``[start, end)``.

        Raises:
            OSError: If fewer bytes than requested could be read
        """
        await self.open()
        await self._file_handle.seek(start)
        data = await self._file_handle.read(end - start)
        if len(data) != end - start:
            raise OSError(
                f"Short read from {self._path}: wanted {end - start} bytes at {start}, got {len(data)}"
            )
        self._logger.debug(f"Read chunk: {start}-{end} ({len(data)} bytes)")
        return data

    async def read_all(self) -> bytes:
        """Read the entire file."""
        if self._size == 0:
            return b''
        return await self.read_range(0, self._size)


class MemoryFileReader:
    """Range reader over an in-memory payload."""

    def __init__(self, data: bytes):
        self._data = bytes(data)

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def identity(self) -> Optional[str]:
        # In-memory payloads cannot be recognised across restarts
        return None

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def read_range(self, start: int, end: int) -> bytes:
        return self._data[start:end]

    async def read_all(self) -> bytes:
        return self._data
