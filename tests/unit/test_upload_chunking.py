"""Tests for chunking strategies."""
import pytest

from drivepush.core.api.config import DEFAULT_CHUNK_SIZE, RESUMABLE_ALIGNMENT
from drivepush.core.upload.strategies import FixedSizeChunkingStrategy

MIB = 1024 * 1024


class TestFixedSizeChunkingStrategy:
    """Test suite for FixedSizeChunkingStrategy."""

    @pytest.fixture
    def strategy(self):
        """Create strategy with default 16 MiB windows."""
        return FixedSizeChunkingStrategy()

    def test_default_chunk_size(self, strategy):
        assert strategy.chunk_size == DEFAULT_CHUNK_SIZE == 16 * MIB

    def test_100_mib_file(self, strategy):
        """Test 100 MiB splits into 6 full windows and one 4 MiB tail."""
        chunks = strategy.calculate_chunks(100 * MIB)

        assert len(chunks) == 7
        assert all(end - start == 16 * MIB for start, end in chunks[:-1])
        assert chunks[-1] == (96 * MIB, 100 * MIB)

    def test_chunks_are_contiguous(self, strategy):
        """Test offsets are contiguous and increasing."""
        chunks = strategy.calculate_chunks(50 * MIB + 123)

        assert chunks[0][0] == 0
        for (_, prev_end), (start, _) in zip(chunks, chunks[1:]):
            assert start == prev_end
        assert chunks[-1][1] == 50 * MIB + 123

    def test_exact_multiple(self, strategy):
        chunks = strategy.calculate_chunks(32 * MIB)

        assert chunks == [(0, 16 * MIB), (16 * MIB, 32 * MIB)]

    def test_empty_file(self, strategy):
        assert strategy.calculate_chunks(0) == []

    def test_next_window_from_offset(self, strategy):
        """Test a window can start at any acknowledged offset."""
        assert strategy.next_window(1000, 20 * MIB) == (1000, 1000 + 16 * MIB)
        assert strategy.next_window(19 * MIB, 20 * MIB) == (19 * MIB, 20 * MIB)

    def test_next_window_out_of_range(self, strategy):
        with pytest.raises(ValueError):
            strategy.next_window(10, 10)

    @pytest.mark.parametrize("size", [0, -RESUMABLE_ALIGNMENT, 1000, RESUMABLE_ALIGNMENT + 1])
    def test_rejects_unaligned_sizes(self, size):
        """Test chunk sizes must be positive multiples of 256 KiB."""
        with pytest.raises(ValueError):
            FixedSizeChunkingStrategy(size)

    def test_accepts_aligned_size(self):
        assert FixedSizeChunkingStrategy(RESUMABLE_ALIGNMENT * 3).chunk_size == 768 * 1024
