"""
Chunk upload service.

Streams a file into a resumable session one window at a time.
"""
import time
from functools import partial
from typing import Optional

from .session_service import parse_range_end
from ..models import ChunkInfo, ProgressCallback, ProgressEvent, UploadResult, UploadSession
from ..protocols import ChunkingStrategy, FileReaderProtocol
from ..registry import CancelToken, guarded
from ..strategies import FixedSizeChunkingStrategy
from ...api.retry import RetryGovernor
from ...api.transport import HttpTransport, TransportResponse
from ...exceptions import ChunkUploadError, error_detail
from ...logging import get_logger


class ChunkUploader:
    """
    Sends chunks to a resumable session.

    Chunks of one upload go strictly in offset order, one request at a
    time: each request depends on the previous one's acknowledged offset.

    Responsibilities:
    - Read each window and PUT it with a Content-Range header
    - Interpret 200/201 (done), 308 (continue) and anything else (failure)
    - Retry failed chunks through the RetryGovernor
    """

    def __init__(
        self,
        transport: HttpTransport,
        chunking: Optional[ChunkingStrategy] = None,
        governor: Optional[RetryGovernor] = None
    ):
        """
        Initialize chunk uploader.

        Args:
            transport: HTTP transport
            chunking: Window strategy (16 MiB fixed windows by default)
            governor: Retry governor applied to every chunk
        """
        self._transport = transport
        self._chunking = chunking or FixedSizeChunkingStrategy()
        self._governor = governor or RetryGovernor()
        self._logger = get_logger('drivepush.upload.chunk')

    async def transfer(
        self,
        session: UploadSession,
        reader: FileReaderProtocol,
        cancel_token: Optional[CancelToken] = None,
        on_progress: Optional[ProgressCallback] = None,
        governor: Optional[RetryGovernor] = None
    ) -> UploadResult:
        """
        Run the chunk loop until the session reports completion.

        Args:
            session: Open upload session (``next_offset`` is advanced in place)
            reader: Source of the file bytes
            cancel_token: Optional cancellation token
            on_progress: Optional progress callback
            governor: Optional per-upload governor overriding the default

        Returns:
            UploadResult from the terminal 200/201 response

        Raises:
            ChunkUploadError: If a chunk fails after all retries
            UploadCancelled: If the token fires
        """
        governor = governor or self._governor
        total = session.total_size
        total_chunks = len(self._chunking.calculate_chunks(total - session.next_offset))
        self._logger.info(
            f"Uploading {total / (1024 * 1024):.1f} MB from byte {session.next_offset} "
            f"in {total_chunks} chunks"
        )

        index = 0
        while session.next_offset < total:
            start, end = self._chunking.next_window(session.next_offset, total)
            chunk = ChunkInfo(index=index, start=start, end=end)
            data = await reader.read_range(start, end)

            result = await governor.run(
                partial(self.upload_chunk, session, chunk, data, cancel_token),
                cancel_token,
                description=f"chunk {index} ({chunk.content_range(total)})"
            )
            del data

            if result is not None:
                session.next_offset = total
                if on_progress:
                    on_progress(ProgressEvent.of(total, total))
                self._logger.info(f"Uploaded (chunked): {result.display_name}")
                return result

            if on_progress:
                on_progress(ProgressEvent.of(session.next_offset, total))
            index += 1

        raise ChunkUploadError(
            "Upload completed but no result received",
            offset=session.next_offset
        )

    async def upload_chunk(
        self,
        session: UploadSession,
        chunk: ChunkInfo,
        data: bytes,
        cancel_token: Optional[CancelToken] = None
    ) -> Optional[UploadResult]:
        """
        Upload a single chunk.

        Args:
            session: Upload session
            chunk: Window being sent
            data: Chunk bytes
            cancel_token: Optional cancellation token

        Returns:
            UploadResult on the terminal chunk, None while more is expected

        Raises:
            ChunkUploadError: If the server rejects the chunk
        """
        headers = {
            'Content-Type': session.content_type,
            'Content-Range': chunk.content_range(session.total_size),
        }

        upload_start = time.time()
        self._logger.debug(
            f"Uploading chunk {chunk.index} {headers['Content-Range']} ({chunk.size / 1024:.1f} KB)"
        )
        response = await guarded(cancel_token, self._transport.request(
            'PUT',
            session.session_handle,
            headers=headers,
            data=data
        ))
        result = self._process_response(response, session, chunk)

        upload_time = time.time() - upload_start
        speed_kbps = (chunk.size / 1024 / upload_time) if upload_time > 0 else 0
        self._logger.debug(f"Chunk {chunk.index} accepted in {upload_time:.2f}s ({speed_kbps:.1f} KB/s)")
        return result

    def _process_response(
        self,
        response: TransportResponse,
        session: UploadSession,
        chunk: ChunkInfo
    ) -> Optional[UploadResult]:
        """
        Interpret a chunk response.

        Returns:
            UploadResult for 200/201, None for 308

        Raises:
            ChunkUploadError: For any other status or an unreadable body
        """
        if response.status in (200, 201):
            try:
                return UploadResult.from_response(response.json(), session.total_size)
            except ValueError as e:
                raise ChunkUploadError(
                    "Failed to parse upload response", response.status, chunk.start
                ) from e

        if response.status == 308:
            acknowledged = parse_range_end(response.header('Range'))
            if acknowledged is None:
                session.next_offset = chunk.end
            elif acknowledged <= chunk.start:
                raise ChunkUploadError(
                    f"Server did not persist chunk {chunk.index}", 308, chunk.start
                )
            else:
                if acknowledged < chunk.end:
                    self._logger.debug(
                        f"Server persisted {acknowledged - chunk.start} of {chunk.size} bytes "
                        f"of chunk {chunk.index}; resending from {acknowledged}"
                    )
                session.next_offset = min(acknowledged, session.total_size)
            return None

        detail = error_detail(response.body, '')
        self._logger.error(f"Server returned {response.status} for chunk {chunk.index}")
        raise ChunkUploadError(
            f"Chunk upload failed: {response.status} {detail}".rstrip(),
            response.status,
            chunk.start
        )
