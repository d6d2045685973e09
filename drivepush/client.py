"""
DriveClient - High-level async client for Drive uploads.

Example:
    >>> async with DriveClient("drive", authorizer=authorizer) as drive:
    ...     result = await drive.upload_file("video.mp4", folder_id)
    ...     print(result.view_link)
"""
import json
import re
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .core.api import (
    AiohttpTransport,
    DriveConfig,
    EventEmitter,
    ExponentialBackoffStrategy,
    HttpTransport,
    RetryGovernor,
    TransportResponse,
)
from .core.auth import Authorizer, CredentialStore, RefreshTokenAuthorizer
from .core.exceptions import (
    AuthDenied,
    DriveException,
    DriveRequestError,
    error_detail,
)
from .core.logging import get_logger
from .core.session import CredentialStorage, MemoryStorage, SQLiteStorage
from .core.upload import (
    FixedSizeChunkingStrategy,
    UploadCoordinator,
    UploadRegistry,
    UploadRequest,
    UploadResult,
)
from .core.upload.models import ProgressCallback

FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'
DOWNLOAD_URL = 'https://drive.google.com/uc?id={}&export=download'

_FILE_PATH_RE = re.compile(r'/file/d/([a-zA-Z0-9_-]+)')
_ID_PARAM_RE = re.compile(r'[?&]id=([a-zA-Z0-9_-]+)')

logger = get_logger('drivepush.client')


def extract_drive_file_id(file_id_or_url: str) -> str:
    """
    Extract a file id from a Drive share link.

    Bare ids and unrecognised strings are returned unchanged.

    Example:
        >>> extract_drive_file_id("https://drive.google.com/file/d/abc123/view")
        'abc123'
    """
    if not file_id_or_url:
        return file_id_or_url
    if '/' not in file_id_or_url and '?' not in file_id_or_url:
        return file_id_or_url
    match = _FILE_PATH_RE.search(file_id_or_url) or _ID_PARAM_RE.search(file_id_or_url)
    if match:
        return match.group(1)
    return file_id_or_url


def get_download_url(file_id_or_url: str) -> str:
    """Build a direct download URL for a file id or share link."""
    return DOWNLOAD_URL.format(extract_drive_file_id(file_id_or_url))


def _quote(value: str) -> str:
    return value.replace('\\', '\\\\').replace("'", "\\'")


class DriveClient:
    """
    High-level async client for Drive with session support.

    The client owns one transport, one credential store and one upload
    registry; every upload started through it shares them.

    Session mode (token persisted in ``<name>.session``):
        >>> client = DriveClient("drive", authorizer=authorizer)
        >>> await client.sign_in()

    Refresh-token mode:
        >>> async with DriveClient(
        ...     "drive",
        ...     client_id=cid, client_secret=secret, refresh_token=rt
        ... ) as drive:
        ...     await drive.upload_file("report.pdf", folder_id)
    """

    def __init__(
        self,
        session: Optional[Union[str, CredentialStorage]] = None,
        *,
        authorizer: Optional[Authorizer] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        refresh_token: Optional[str] = None,
        config: Optional[DriveConfig] = None,
        base_path: Optional[Path] = None,
        transport: Optional[HttpTransport] = None,
        governor: Optional[RetryGovernor] = None,
        resumable_journal: bool = False
    ):
        """
        Initialize Drive client.

        Args:
            session: Session name (creates .session file), a storage
                instance, or None for in-memory storage
            authorizer: Token source used when no valid token exists
            client_id: OAuth client id (refresh-token mode)
            client_secret: OAuth client secret (refresh-token mode)
            refresh_token: OAuth refresh token (refresh-token mode)
            config: Optional client configuration
            base_path: Base path for session files
            transport: Optional HTTP transport (aiohttp by default)
            governor: Optional retry governor
            resumable_journal: Persist open resumable sessions so an
                interrupted upload continues after a restart
        """
        self._config = config or DriveConfig.default()
        self._transport = transport or AiohttpTransport(self._config)
        self._owns_transport = transport is None

        if session is None:
            self._storage = MemoryStorage()
        elif isinstance(session, str):
            self._storage = SQLiteStorage(session, base_path)
        else:
            self._storage = session

        if authorizer is None and refresh_token:
            authorizer = RefreshTokenAuthorizer(
                self._transport,
                client_id or '',
                client_secret or '',
                refresh_token,
                self._config
            )

        journal = None
        if resumable_journal:
            if not hasattr(self._storage, 'put_upload'):
                raise ValueError("Session storage does not support an upload journal")
            journal = self._storage

        self._credentials = CredentialStore(self._storage, authorizer)
        self._governor = governor or RetryGovernor(
            ExponentialBackoffStrategy(self._config.retry)
        )
        self._registry = UploadRegistry()
        self._emitter = EventEmitter('drivepush.client.events')
        self._coordinator = UploadCoordinator(
            self._transport,
            self._credentials,
            config=self._config,
            registry=self._registry,
            governor=self._governor,
            chunking=FixedSizeChunkingStrategy(self._config.chunk_size),
            journal=journal,
            emitter=self._emitter,
        )

    @property
    def config(self) -> DriveConfig:
        return self._config

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    @property
    def registry(self) -> UploadRegistry:
        return self._registry

    def on(self, event: str, callback: Callable) -> 'DriveClient':
        """
        Register an event handler.

        Events:
            state: ``callback(upload_key, UploadState)`` on every transition
        """
        self._emitter.on(event, callback)
        return self

    # ==================== Authentication ====================

    async def sign_in(self) -> Dict[str, Any]:
        """
        Ensure a valid credential and verify Drive access.

        Returns:
            The ``user`` object reported by the API

        Raises:
            AuthRequired: If no token could be obtained
            AuthDenied: If the API rejected the token (401/403)
            DriveRequestError: If the check failed for another reason
        """
        response = await self._governor.run(self._fetch_about, description="access check")
        user = response.json().get('user', {})
        logger.info(f"Signed in to Google Drive as {user.get('emailAddress', 'unknown user')}")
        return user

    async def _fetch_about(self) -> TransportResponse:
        credential = await self._credentials.ensure_valid()
        response = await self._transport.request(
            'GET',
            f"{self._config.api_base}/about",
            params={'fields': 'user'},
            headers={'Authorization': credential.authorization}
        )
        if response.status in (401, 403):
            self._credentials.invalidate()
            detail = error_detail(response.body, f"HTTP {response.status}")
            raise AuthDenied(
                f"Google Drive access denied. Please ensure you granted Drive permissions. ({detail})",
                response.status
            )
        if not response.ok:
            raise DriveRequestError(
                f"Access check failed: {error_detail(response.body, f'HTTP {response.status}')}",
                response.status
            )
        return response

    async def sign_out(self) -> None:
        """Abort every upload, revoke the token and clear it from storage."""
        aborted = self._registry.cancel_all()
        if aborted:
            logger.info(f"Aborted {aborted} upload(s) on sign-out")
        await self._credentials.revoke()
        logger.info("Signed out of Google Drive")

    def is_signed_in(self) -> bool:
        """Check for a valid credential without prompting."""
        return self._credentials.peek() is not None

    # ==================== Uploads ====================

    async def upload_file(
        self,
        file: Union[str, Path, bytes],
        destination: str,
        on_progress: Optional[ProgressCallback] = None,
        upload_key: Optional[str] = None,
        rename_to: Optional[str] = None,
        content_type: Optional[str] = None
    ) -> UploadResult:
        """
        Upload a file into a destination folder.

        Files up to ``small_file_threshold`` go in one multipart request;
        larger files use a resumable session sent in chunks.

        Args:
            file: Path to the file, or raw bytes (requires ``rename_to``)
            destination: Parent folder id
            on_progress: Optional callback receiving ProgressEvent
            upload_key: Optional key for ``abort_upload``
            rename_to: Optional name to store the file under
            content_type: Optional MIME type (guessed from the name otherwise)

        Returns:
            UploadResult with the remote id and links

        Raises:
            UploadCancelled: If the upload was aborted
            AuthRequired: If no credential could be obtained
            DriveException: Any other failure

        Example:
            >>> result = await drive.upload_file(
            ...     "video.mp4", folder_id,
            ...     on_progress=lambda p: print(f"{p.percent_complete}%"),
            ...     upload_key="video-1"
            ... )
        """
        request = UploadRequest(
            source=file,
            destination=destination,
            upload_key=upload_key,
            rename_to=rename_to,
            content_type=content_type,
            on_progress=on_progress,
        )
        return await self._coordinator.upload(request)

    def abort_upload(self, upload_key: str) -> bool:
        """
        Abort the upload registered under ``upload_key``.

        Returns:
            True if an upload was aborted, False if none was running
        """
        return self._registry.cancel(upload_key)

    # ==================== Files and folders ====================

    async def _api_request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None
    ) -> TransportResponse:
        credential = await self._credentials.ensure_valid()
        headers = {'Authorization': credential.authorization}
        data = None
        if body is not None:
            headers['Content-Type'] = 'application/json; charset=UTF-8'
            data = json.dumps(body).encode('utf-8')

        response = await self._transport.request(
            method,
            f"{self._config.api_base}{path}",
            params=params,
            headers=headers,
            data=data
        )
        if response.status == 401:
            self._credentials.invalidate()
            raise AuthDenied(
                f"Authorization rejected: {error_detail(response.body, 'HTTP 401')}",
                response.status
            )
        if not response.ok:
            raise DriveRequestError(
                error_detail(response.body, f"HTTP {response.status}"),
                response.status
            )
        return response

    async def create_folder(self, name: str, parent: Optional[str] = None) -> str:
        """
        Create a folder.

        Args:
            name: Folder name
            parent: Optional parent folder id

        Returns:
            Id of the new folder
        """
        resource: Dict[str, Any] = {'name': name, 'mimeType': FOLDER_MIME_TYPE}
        if parent:
            resource['parents'] = [parent]
        try:
            response = await self._api_request(
                'POST', '/files', params={'fields': 'id'}, body=resource
            )
        except DriveRequestError as e:
            raise DriveRequestError(f"Failed to create folder: {e.message}", e.status) from e
        folder_id = response.json().get('id', '')
        logger.info(f"Created folder: {name}")
        return folder_id

    async def find_folder(self, name: str, parent: Optional[str] = None) -> Optional[str]:
        """
        Find a folder by name.

        Returns:
            Id of the first matching folder, or None
        """
        query = f"name='{_quote(name)}' and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        if parent:
            query += f" and '{_quote(parent)}' in parents"

        response = await self._governor.run(
            partial(
                self._api_request,
                'GET',
                '/files',
                {'q': query, 'fields': 'files(id, name)', 'spaces': 'drive'}
            ),
            description=f"folder lookup for {name}"
        )
        folders = response.json().get('files') or []
        if folders:
            return folders[0].get('id')
        return None

    async def share_folder(self, folder_id: str, email: str, role: str = 'reader') -> bool:
        """
        Share a folder with an address, without a notification mail.

        Failures are logged, not raised.

        Returns:
            True if the grant succeeded
        """
        try:
            await self._coordinator.permissions.share_with(folder_id, email, role)
        except DriveException as e:
            logger.warning(f"Failed to share folder with {email}: {e}")
            return False
        return True

    async def delete_file(self, file_id: str) -> None:
        """Permanently delete a file or folder."""
        try:
            await self._api_request('DELETE', f"/files/{extract_drive_file_id(file_id)}")
        except DriveRequestError as e:
            raise DriveRequestError(f"Failed to delete file: {e.message}", e.status) from e
        logger.info(f"Deleted file: {file_id}")

    async def download_as_bytes(self, file_id_or_url: str) -> bytes:
        """
        Download a file's content.

        Args:
            file_id_or_url: File id or share link

        Returns:
            File bytes
        """
        file_id = extract_drive_file_id(file_id_or_url)
        try:
            response = await self._governor.run(
                partial(self._api_request, 'GET', f"/files/{file_id}", {'alt': 'media'}),
                description=f"download of {file_id}"
            )
        except DriveRequestError as e:
            raise DriveRequestError(f"Failed to download file {file_id}: {e.message}", e.status) from e
        return response.body

    extract_drive_file_id = staticmethod(extract_drive_file_id)
    get_download_url = staticmethod(get_download_url)

    # ==================== Lifecycle ====================

    async def close(self) -> None:
        """Abort live uploads and release the transport and storage."""
        self._registry.cancel_all()
        if self._owns_transport:
            await self._transport.close()
        self._storage.close()

    async def __aenter__(self) -> 'DriveClient':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
