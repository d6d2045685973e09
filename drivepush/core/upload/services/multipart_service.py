"""
Single-request multipart upload for small files.

Metadata and bytes travel in one ``multipart/related`` exchange.
"""
import json
import uuid
from typing import Any, Dict, Optional, Tuple

from ..models import FileMetadata, ProgressCallback, ProgressEvent, UploadResult
from ..registry import CancelToken, guarded
from ...api.config import DriveConfig, UPLOAD_FIELDS
from ...api.transport import HttpTransport
from ...auth import CredentialStore
from ...exceptions import AuthDenied, ChunkUploadError, error_detail
from ...logging import get_logger
from ...session import Credential


def encode_multipart_related(
    resource: Dict[str, Any],
    data: bytes,
    content_type: str,
    boundary: Optional[str] = None
) -> Tuple[bytes, str]:
    """
    Build a ``multipart/related`` body: JSON metadata part then file part.

    Args:
        resource: Drive file resource
        data: File bytes
        content_type: MIME type of the file part
        boundary: Optional boundary (random when omitted)

    Returns:
        Tuple of (body, Content-Type header value)
    """
    boundary = boundary or f"drivepush-{uuid.uuid4().hex}"
    delimiter = f"--{boundary}\r\n".encode()
    body = b''.join([
        delimiter,
        b'Content-Type: application/json; charset=UTF-8\r\n\r\n',
        json.dumps(resource).encode('utf-8'),
        b'\r\n',
        delimiter,
        f"Content-Type: {content_type}\r\n\r\n".encode(),
        data,
        f"\r\n--{boundary}--\r\n".encode(),
    ])
    return body, f"multipart/related; boundary={boundary}"


class MultipartUploader:
    """
    Uploads files at or below the small-file threshold.

    Progress comes from the transport's byte-level send callback rather
    than from chunk boundaries.
    """

    def __init__(
        self,
        transport: HttpTransport,
        credentials: CredentialStore,
        config: Optional[DriveConfig] = None
    ):
        self._transport = transport
        self._credentials = credentials
        self._config = config or DriveConfig.default()
        self._logger = get_logger('drivepush.upload.multipart')

    async def upload(
        self,
        metadata: FileMetadata,
        destination: str,
        data: bytes,
        credential: Credential,
        cancel_token: Optional[CancelToken] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> UploadResult:
        """
        Upload ``data`` in a single request.

        Args:
            metadata: Declared file metadata
            destination: Parent folder id
            data: File bytes
            credential: Valid credential
            cancel_token: Optional cancellation token
            on_progress: Optional progress callback

        Returns:
            UploadResult

        Raises:
            AuthDenied: On HTTP 401 (the credential store is invalidated)
            ChunkUploadError: On any other non-2xx status
        """
        body, content_type = encode_multipart_related(
            metadata.to_resource(destination), data, metadata.content_type
        )

        def on_sent(sent: int, total: int) -> None:
            # Envelope bytes scaled to file bytes; 100% waits for the response
            if on_progress and metadata.size and sent < total:
                on_progress(ProgressEvent.of(sent * metadata.size // total, metadata.size))

        response = await guarded(cancel_token, self._transport.request(
            'POST',
            self._config.upload_endpoint,
            params={'uploadType': 'multipart', 'fields': UPLOAD_FIELDS},
            headers={
                'Authorization': credential.authorization,
                'Content-Type': content_type,
            },
            data=body,
            on_sent=on_sent
        ))

        if response.status == 401:
            self._credentials.invalidate()
            raise AuthDenied(
                f"Authorization rejected: {error_detail(response.body, 'HTTP 401')}",
                response.status
            )
        if response.status not in (200, 201):
            detail = error_detail(response.body, f"HTTP {response.status}")
            raise ChunkUploadError(f"Upload failed: {detail}", response.status, 0)

        try:
            result = UploadResult.from_response(response.json(), metadata.size)
        except ValueError as e:
            raise ChunkUploadError("Failed to parse upload response", response.status, 0) from e

        if on_progress:
            on_progress(ProgressEvent.of(metadata.size, metadata.size))
        self._logger.info(f"Uploaded: {result.display_name}")
        return result
