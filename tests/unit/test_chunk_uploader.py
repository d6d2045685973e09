"""Tests for the chunk loop."""
import re

import pytest

from drivepush.core.api import TransportResponse
from drivepush.core.exceptions import ChunkUploadError, NetworkError
from drivepush.core.upload import FixedSizeChunkingStrategy, UploadSession
from drivepush.core.upload.services import AsyncFileReader, ChunkUploader, MemoryFileReader

from tests.conftest import SESSION_URI, file_resource, json_response, resumable_server

KIB = 1024
MIB = 1024 * 1024
_RANGE_RE = re.compile(r'bytes (\d+)-(\d+)/(\d+)')


def ranges(requests):
    """(start, end inclusive, total) for every chunk PUT."""
    return [
        tuple(int(g) for g in _RANGE_RE.match(r.headers['Content-Range']).groups())
        for r in requests
    ]


class TestChunkUploader:
    """Test suite for ChunkUploader."""

    @pytest.fixture
    def uploader(self, transport, governor):
        return ChunkUploader(transport, FixedSizeChunkingStrategy(256 * KIB), governor)

    def _session(self, total):
        return UploadSession(SESSION_URI, total, "application/octet-stream", "folder-1")

    @pytest.mark.asyncio
    async def test_offsets_contiguous_and_increasing(self, uploader, transport):
        """Test every chunk starts where the previous ended."""
        total = 600 * KIB
        data = bytes(range(256)) * (total // 256)
        transport.add('PUT', 'upload_id', resumable_server(total), repeat=True)

        result = await uploader.transfer(self._session(total), MemoryFileReader(data))

        sent = ranges(transport.requests)
        assert sent == [
            (0, 256 * KIB - 1, total),
            (256 * KIB, 512 * KIB - 1, total),
            (512 * KIB, total - 1, total),
        ]
        assert b''.join(r.data for r in transport.requests) == data
        assert result.remote_id == 'file-1'

    @pytest.mark.asyncio
    async def test_chunk_headers(self, uploader, transport):
        transport.add('PUT', 'upload_id', resumable_server(10), repeat=True)
        session = UploadSession(SESSION_URI, 10, "video/mp4", "folder-1")

        await uploader.transfer(session, MemoryFileReader(b'0123456789'))

        headers = transport.requests[0].headers
        assert headers['Content-Type'] == 'video/mp4'
        assert headers['Content-Range'] == 'bytes 0-9/10'

    @pytest.mark.asyncio
    async def test_100_mib_file_in_16_mib_chunks(self, transport, governor, tmp_path):
        """Test 100 MiB goes as 7 PUTs: six 308 responses then one 200."""
        total = 100 * MIB
        path = tmp_path / "big.bin"
        with open(path, "wb") as f:
            f.truncate(total)

        statuses = []
        server = resumable_server(total)

        def respond(request):
            response = server(request)
            statuses.append(response.status)
            return response

        transport.add('PUT', 'upload_id', respond, repeat=True)
        uploader = ChunkUploader(transport, FixedSizeChunkingStrategy(), governor)
        progress = []
        reader = AsyncFileReader(path)

        try:
            result = await uploader.transfer(self._session(total), reader, on_progress=progress.append)
        finally:
            await reader.close()

        assert len(transport.requests) == 7
        assert statuses == [308] * 6 + [200]
        assert [r.size for r in transport.requests] == [16 * MIB] * 6 + [4 * MIB]
        assert result.byte_size == total
        assert progress[-1].percent_complete == 100
        assert [p.bytes_sent for p in progress] == sorted(p.bytes_sent for p in progress)

    @pytest.mark.asyncio
    async def test_retry_then_success(self, uploader, transport, sleeper):
        """Test a failed chunk is resent from the same offset."""
        total = 300 * KIB
        server = resumable_server(total)
        transport.add('PUT', 'upload_id', server, TransportResponse(503), NetworkError("reset"), server, server)

        result = await uploader.transfer(self._session(total), MemoryFileReader(b'x' * total))

        starts = [r[0] for r in ranges(transport.requests)]
        assert starts == [0, 256 * KIB, 256 * KIB, 256 * KIB]
        assert sleeper.delays == [1.0, 2.0]
        assert result.remote_id == 'file-1'

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, uploader, transport, sleeper):
        """Test 4 attempts then the last ChunkUploadError surfaces."""
        transport.add('PUT', 'upload_id', TransportResponse(500), repeat=True)

        with pytest.raises(ChunkUploadError) as exc_info:
            await uploader.transfer(self._session(100), MemoryFileReader(b'x' * 100))

        assert len(transport.requests) == 4
        assert exc_info.value.status == 500
        assert exc_info.value.offset == 0
        assert sleeper.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_partial_acknowledgement(self, uploader, transport):
        """Test a short Range makes the next window start at the acknowledged byte."""
        total = 512 * KIB
        server = resumable_server(total)
        transport.add(
            'PUT', 'upload_id',
            TransportResponse(308, {'Range': f'bytes=0-{100 * KIB - 1}'}),
            server,
            server,
            repeat=True
        )

        await uploader.transfer(self._session(total), MemoryFileReader(b'y' * total))

        starts = [r[0] for r in ranges(transport.requests)]
        assert starts == [0, 100 * KIB, 356 * KIB]

    @pytest.mark.asyncio
    async def test_308_without_range_advances_window(self, uploader, transport):
        total = 512 * KIB
        transport.add('PUT', 'upload_id', TransportResponse(308), json_response(200, file_resource()))

        await uploader.transfer(self._session(total), MemoryFileReader(b'z' * total))

        assert [r[0] for r in ranges(transport.requests)] == [0, 256 * KIB]

    @pytest.mark.asyncio
    async def test_no_progress_is_an_error(self, uploader, transport):
        """Test a 308 that acknowledges nothing of the chunk fails it."""
        transport.add('PUT', 'upload_id', TransportResponse(308, {'Range': 'bytes=0-0'}), repeat=True)
        session = self._session(512 * KIB)
        session.next_offset = 256 * KIB

        with pytest.raises(ChunkUploadError, match="did not persist"):
            await uploader.transfer(session, MemoryFileReader(b'z' * 512 * KIB))

    @pytest.mark.asyncio
    async def test_loop_ends_without_result(self, uploader, transport):
        """Test the last chunk answered with 308 is reported as an error."""
        transport.add('PUT', 'upload_id', TransportResponse(308), repeat=True)

        with pytest.raises(ChunkUploadError, match="no result"):
            await uploader.transfer(self._session(100), MemoryFileReader(b'x' * 100))

    @pytest.mark.asyncio
    async def test_resumes_from_session_offset(self, uploader, transport):
        total = 512 * KIB
        transport.add('PUT', 'upload_id', resumable_server(total), repeat=True)
        session = self._session(total)
        session.next_offset = 256 * KIB

        await uploader.transfer(session, MemoryFileReader(b'q' * total))

        assert ranges(transport.requests) == [(256 * KIB, total - 1, total)]
