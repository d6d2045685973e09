"""
Resumable session negotiation.

Opens resumable upload sessions and queries the state of existing ones.
"""
import json
import re
from typing import Optional

from ..models import FileMetadata, UploadPath, UploadResult, UploadSession
from ..registry import CancelToken, guarded
from ...api.config import DriveConfig, UPLOAD_FIELDS
from ...api.transport import HttpTransport, TransportResponse
from ...auth import CredentialStore
from ...exceptions import (
    AuthDenied,
    ChunkUploadError,
    SessionInitError,
    error_detail
)
from ...logging import get_logger
from ...session import Credential

_RANGE_RE = re.compile(r'bytes=(\d+)-(\d+)')


def choose_upload_path(size: int, small_file_threshold: int) -> UploadPath:
    """
    Pick the transfer path for a file of ``size`` bytes.

    Files at or below the threshold gain nothing from resumability and
    go through a single multipart request.
    """
    if size <= small_file_threshold:
        return UploadPath.MULTIPART
    return UploadPath.RESUMABLE


def parse_range_end(value: Optional[str]) -> Optional[int]:
    """
    Parse a resumable ``Range: bytes=0-N`` header.

    Returns:
        The next offset (N + 1), or None if the header is absent or malformed
    """
    if not value:
        return None
    match = _RANGE_RE.search(value)
    if match is None:
        return None
    return int(match.group(2)) + 1


class SessionNegotiator:
    """
    Opens resumable upload sessions.

    Responsibilities:
    - Send the initiate request with declared size and content type
    - Return the session handle from the Location header
    - Query how many bytes an existing session has persisted
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
        self._logger = get_logger('drivepush.upload.session')

    def choose_path(self, size: int) -> UploadPath:
        return choose_upload_path(size, self._config.small_file_threshold)

    async def initiate(
        self,
        metadata: FileMetadata,
        destination: str,
        credential: Credential,
        cancel_token: Optional[CancelToken] = None
    ) -> str:
        """
        Open a resumable session.

        Args:
            metadata: Declared file metadata
            destination: Parent folder id
            credential: Valid credential
            cancel_token: Optional cancellation token

        Returns:
            Session handle URI

        Raises:
            AuthDenied: On HTTP 401 (the credential store is invalidated)
            SessionInitError: On any other non-2xx or a missing Location
        """
        headers = {
            'Authorization': credential.authorization,
            'Content-Type': 'application/json; charset=UTF-8',
            'X-Upload-Content-Type': metadata.content_type,
            'X-Upload-Content-Length': str(metadata.size),
        }
        body = json.dumps(metadata.to_resource(destination)).encode('utf-8')

        response = await guarded(cancel_token, self._transport.request(
            'POST',
            self._config.upload_endpoint,
            params={'uploadType': 'resumable', 'fields': UPLOAD_FIELDS},
            headers=headers,
            data=body
        ))

        if response.status == 401:
            self._credentials.invalidate()
            raise AuthDenied(
                f"Authorization rejected: {error_detail(response.body, 'HTTP 401')}",
                response.status
            )
        if not response.ok:
            detail = error_detail(response.body, f"HTTP {response.status}")
            raise SessionInitError(
                f"Failed to initiate resumable upload: {response.status} {detail}",
                response.status
            )

        session_uri = response.header('Location')
        if not session_uri:
            raise SessionInitError(
                "No resumable session URI returned from Google Drive",
                response.status
            )

        self._logger.debug(f"Opened resumable session for {metadata.name}")
        return session_uri

    async def query_status(
        self,
        session: UploadSession,
        cancel_token: Optional[CancelToken] = None
    ) -> Optional[UploadResult]:
        """
        Ask an existing session how many bytes it holds.

        Updates ``session.next_offset`` from the server's Range header.

        Returns:
            UploadResult if the upload had already completed, None otherwise

        Raises:
            SessionInitError: If the session no longer exists (404/410)
            ChunkUploadError: On any other unexpected status
        """
        response = await guarded(cancel_token, self._transport.request(
            'PUT',
            session.session_handle,
            headers={'Content-Range': f"bytes */{session.total_size}"},
            data=b''
        ))
        return self.apply_status(response, session)

    def apply_status(
        self,
        response: TransportResponse,
        session: UploadSession
    ) -> Optional[UploadResult]:
        if response.status in (200, 201):
            return UploadResult.from_response(response.json(), session.total_size)
        if response.status == 308:
            session.next_offset = parse_range_end(response.header('Range')) or 0
            self._logger.info(
                f"Resuming session at byte {session.next_offset} of {session.total_size}"
            )
            return None
        if response.status in (404, 410):
            raise SessionInitError("Resumable session expired", response.status)
        raise ChunkUploadError(
            f"Session status query failed: {response.status} "
            f"{error_detail(response.body, '')}".rstrip(),
            response.status
        )
