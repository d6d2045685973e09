"""
Protocol definitions for upload module.

Defines interfaces (protocols) for dependency injection and strategy pattern.
"""
from typing import Protocol, List, Tuple


class ChunkingStrategy(Protocol):
    """
    Protocol for file chunking strategies.

    Allows different window sizes to be plugged in.
    """

    def calculate_chunks(self, file_size: int) -> List[Tuple[int, int]]:
        """
        Calculate chunk boundaries for a file.

        Args:
            file_size: Total file size in bytes

        Returns:
            List of (start, end) tuples, end exclusive
        """
        ...

    def next_window(self, offset: int, file_size: int) -> Tuple[int, int]:
        """
        Window starting at ``offset``.

        Args:
            offset: First byte of the window
            file_size: Total file size in bytes

        Returns:
            (start, end) tuple, end exclusive
        """
        ...


class FileReaderProtocol(Protocol):
    """Protocol for file reading operations."""

    @property
    def size(self) -> int:
        """Total number of readable bytes."""
        ...

    async def open(self) -> None:
        """Prepare for reading."""
        ...

    async def read_range(self, start: int, end: int) -> bytes:
        """
        Read bytes ``[start, end)``.

        Raises:
            OSError: If the range cannot be read completely
        """
        ...

    async def read_all(self) -> bytes:
        """Read the whole source."""
        ...

    async def close(self) -> None:
        """Release resources."""
        ...
