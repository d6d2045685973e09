"""
Chunking strategies for resumable uploads.

Implements Strategy Pattern for different window sizes.
"""
from abc import ABC, abstractmethod
from typing import List, Tuple

from ...api.config import DEFAULT_CHUNK_SIZE, RESUMABLE_ALIGNMENT


class BaseChunkingStrategy(ABC):
    """Abstract base class for chunking strategies."""

    @abstractmethod
    def next_window(self, offset: int, file_size: int) -> Tuple[int, int]:
        """Window starting at ``offset``."""
        pass

    def calculate_chunks(self, file_size: int) -> List[Tuple[int, int]]:
        """
        Calculate chunk boundaries for a file.

        Args:
            file_size: Total file size in bytes

        Returns:
            List of (start, end) tuples
        """
        chunks = []
        position = 0

        while position < file_size:
            start, end = self.next_window(position, file_size)
            chunks.append((start, end))
            position = end

        return chunks


class FixedSizeChunkingStrategy(BaseChunkingStrategy):
    """
    Fixed-size windows for the resumable protocol.

    Every window except the last must be a multiple of 256 KiB.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize with chunk size.

        Args:
            chunk_size: Size of each window in bytes
        """
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        if chunk_size % RESUMABLE_ALIGNMENT:
            raise ValueError(
                f"Chunk size must be a multiple of {RESUMABLE_ALIGNMENT} bytes"
            )
        self.chunk_size = chunk_size

    def next_window(self, offset: int, file_size: int) -> Tuple[int, int]:
        if offset < 0 or offset >= file_size:
            raise ValueError(f"Offset {offset} outside file of {file_size} bytes")
        return offset, min(offset + self.chunk_size, file_size)
