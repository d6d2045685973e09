"""
Upload coordinator.

Orchestrates one logical upload using injected dependencies: credential
acquisition, path choice, session negotiation, the chunk loop and the
post-upload grants.
"""
import hashlib
import mimetypes
import time
from functools import partial
from pathlib import Path
from typing import Optional, Tuple, Union

from .models import (
    DEFAULT_CONTENT_TYPE,
    FileMetadata,
    ProgressCallback,
    ProgressEvent,
    UploadPath,
    UploadRequest,
    UploadResult,
    UploadSession,
    UploadState,
)
from .progress import throttle_progress
from .protocols import ChunkingStrategy, FileReaderProtocol
from .registry import CancelToken, UploadRegistry, guarded
from .services import (
    AsyncFileReader,
    ChunkUploader,
    FileValidator,
    MemoryFileReader,
    MultipartUploader,
    PermissionGranter,
    SessionNegotiator,
)
from ..api.config import DriveConfig
from ..api.events import EventEmitter
from ..api.retry import RetryGovernor
from ..api.transport import HttpTransport
from ..auth import CredentialStore
from ..exceptions import DriveException, UploadCancelled
from ..logging import get_logger
from ..session import JournalEntry, SessionJournal

logger = get_logger('drivepush.upload.coordinator')


class _UploadRun:
    """Tracks the state of one upload and publishes transitions."""

    def __init__(self, key: str, emitter: EventEmitter):
        self.key = key
        self.state = UploadState.IDLE
        self._emitter = emitter

    def advance(self, state: UploadState) -> None:
        if state is self.state:
            return
        logger.debug(f"{self.key}: {self.state.value} -> {state.value}")
        self.state = state
        self._emitter.emit('state', self.key, state)


class UploadCoordinator:
    """
    Coordinates the file upload process.

    Uses dependency injection for all components, making it:
    - Testable (scripted transport, injected clocks and sleeps)
    - Extensible (swap chunking strategy, journal, retry policy)

    State transitions are emitted as ``state`` events with
    ``callback(upload_key, state)``.
    """

    def __init__(
        self,
        transport: HttpTransport,
        credentials: CredentialStore,
        config: Optional[DriveConfig] = None,
        registry: Optional[UploadRegistry] = None,
        governor: Optional[RetryGovernor] = None,
        chunking: Optional[ChunkingStrategy] = None,
        journal: Optional[SessionJournal] = None,
        emitter: Optional[EventEmitter] = None
    ):
        """
        Initialize upload coordinator.

        Args:
            transport: HTTP transport shared by every request
            credentials: Credential store shared by every upload
            config: Drive configuration
            registry: Registry of in-flight uploads
            governor: Retry governor for every remote step
            chunking: Window strategy for resumable uploads
            journal: Optional journal enabling resume after a restart
            emitter: Event emitter for state transitions
        """
        self._config = config or DriveConfig.default()
        self._credentials = credentials
        self._registry = registry or UploadRegistry()
        self._governor = governor or RetryGovernor()
        self._journal = journal
        self._emitter = emitter or EventEmitter('drivepush.upload.events')
        self._validator = FileValidator()

        self._negotiator = SessionNegotiator(transport, credentials, self._config)
        self._chunks = ChunkUploader(transport, chunking, self._governor)
        self._multipart = MultipartUploader(transport, credentials, self._config)
        self._permissions = PermissionGranter(
            transport, credentials, self._governor, self._config
        )

    @property
    def registry(self) -> UploadRegistry:
        return self._registry

    @property
    def emitter(self) -> EventEmitter:
        return self._emitter

    @property
    def permissions(self) -> PermissionGranter:
        return self._permissions

    async def upload(self, request: UploadRequest) -> UploadResult:
        """
        Execute the complete upload process.

        Args:
            request: Upload request

        Returns:
            Upload result with the remote file id and links

        Raises:
            UploadCancelled: If the upload was aborted
            AuthRequired: If no credential could be obtained
            FileNotFoundError: If the source file doesn't exist
            DriveException: Any other terminal failure
        """
        run = _UploadRun(request.upload_key or request.name, self._emitter)
        token = CancelToken(request.upload_key)
        if request.upload_key:
            self._registry.register(request.upload_key, token)

        try:
            result = await self._transfer(request, token, run)
        except UploadCancelled:
            logger.info(f"Upload cancelled: {run.key}")
            run.advance(UploadState.CANCELLED)
            raise
        except Exception as e:
            logger.error(f"Upload failed: {run.key}: {e}")
            run.advance(UploadState.FAILED)
            raise
        finally:
            if request.upload_key:
                self._registry.deregister(request.upload_key, token)

        run.advance(UploadState.PERMISSIONING)
        await self._permissions.grant_defaults(
            result.remote_id, self._config.overseer_email
        )
        run.advance(UploadState.DONE)
        return result

    async def _transfer(
        self,
        request: UploadRequest,
        token: CancelToken,
        run: _UploadRun
    ) -> UploadResult:
        run.advance(UploadState.ACQUIRING_CREDENTIAL)
        await token.race(self._credentials.ensure_valid())

        reader = self._open_reader(request.source)
        metadata = FileMetadata(
            name=request.name,
            size=reader.size,
            content_type=self._content_type(request),
        )
        size_mb = metadata.size / (1024 * 1024)
        logger.info(f"Starting upload: {metadata.name} ({size_mb:.2f} MB)")

        throttled = throttle_progress(request.on_progress, self._config.progress_interval)

        def on_progress(event: ProgressEvent) -> None:
            if run.state is UploadState.RETRYING:
                run.advance(UploadState.TRANSFERRING)
            throttled(event)

        governor = self._governor.with_listener(
            lambda attempt, error: run.advance(UploadState.RETRYING)
        )

        start = time.time()
        try:
            if self._negotiator.choose_path(metadata.size) is UploadPath.MULTIPART:
                result = await self._upload_multipart(
                    reader, metadata, request.destination, token, on_progress, governor, run
                )
            else:
                result = await self._upload_resumable(
                    reader, metadata, request.destination, token, on_progress, governor, run
                )
        finally:
            await reader.close()

        logger.info(
            f"Upload of {metadata.name} finished in {time.time() - start:.2f}s: {result.remote_id}"
        )
        return result

    def _open_reader(self, source: Union[Path, bytes]) -> FileReaderProtocol:
        if isinstance(source, (bytes, bytearray)):
            return MemoryFileReader(source)
        path, size = self._validator.validate(source)
        self._validator.validate_size(size)
        return AsyncFileReader(path, size)

    @staticmethod
    def _content_type(request: UploadRequest) -> str:
        if request.content_type:
            return request.content_type
        guessed, _ = mimetypes.guess_type(request.name)
        return guessed or DEFAULT_CONTENT_TYPE

    async def _upload_multipart(
        self,
        reader: FileReaderProtocol,
        metadata: FileMetadata,
        destination: str,
        token: CancelToken,
        on_progress: ProgressCallback,
        governor: RetryGovernor,
        run: _UploadRun
    ) -> UploadResult:
        data = await reader.read_all()
        run.advance(UploadState.TRANSFERRING)
        return await governor.run(
            partial(self._multipart_attempt, metadata, destination, data, token, on_progress),
            token,
            description=f"multipart upload of {metadata.name}"
        )

    async def _multipart_attempt(
        self,
        metadata: FileMetadata,
        destination: str,
        data: bytes,
        token: CancelToken,
        on_progress: ProgressCallback
    ) -> UploadResult:
        credential = await guarded(token, self._credentials.ensure_valid())
        return await self._multipart.upload(
            metadata, destination, data, credential, token, on_progress
        )

    async def _upload_resumable(
        self,
        reader: FileReaderProtocol,
        metadata: FileMetadata,
        destination: str,
        token: CancelToken,
        on_progress: ProgressCallback,
        governor: RetryGovernor,
        run: _UploadRun
    ) -> UploadResult:
        fingerprint = self._fingerprint(reader, metadata, destination)

        session, result = await self._resume(fingerprint, metadata, destination, token)
        if result is not None:
            logger.info(f"Upload of {metadata.name} had already completed")
            self._forget(fingerprint)
            return result

        if session is None:
            run.advance(UploadState.NEGOTIATING_SESSION)
            handle = await governor.run(
                partial(self._initiate_attempt, metadata, destination, token),
                token,
                description=f"session for {metadata.name}"
            )
            session = UploadSession(
                session_handle=handle,
                total_size=metadata.size,
                content_type=metadata.content_type,
                destination=destination,
            )
            if fingerprint is not None:
                self._journal.put_upload(JournalEntry(
                    fingerprint=fingerprint,
                    session_uri=handle,
                    total_size=metadata.size,
                    content_type=metadata.content_type,
                ))

        run.advance(UploadState.TRANSFERRING)
        try:
            result = await self._chunks.transfer(
                session, reader, token, on_progress, governor
            )
        except UploadCancelled:
            self._forget(fingerprint)
            raise

        self._forget(fingerprint)
        return result

    async def _initiate_attempt(
        self,
        metadata: FileMetadata,
        destination: str,
        token: CancelToken
    ) -> str:
        credential = await guarded(token, self._credentials.ensure_valid())
        return await self._negotiator.initiate(metadata, destination, credential, token)

    def _fingerprint(
        self,
        reader: FileReaderProtocol,
        metadata: FileMetadata,
        destination: str
    ) -> Optional[str]:
        if self._journal is None:
            return None
        identity = getattr(reader, 'identity', None)
        if identity is None:
            return None
        raw = f"{identity}|{metadata.name}|{destination}"
        return hashlib.sha256(raw.encode('utf-8')).hexdigest()

    async def _resume(
        self,
        fingerprint: Optional[str],
        metadata: FileMetadata,
        destination: str,
        token: CancelToken
    ) -> Tuple[Optional[UploadSession], Optional[UploadResult]]:
        """
        Look up a journaled session for this file.

        Returns:
            (session positioned at the server's offset, None), or
            (None, result) if the session already completed, or
            (None, None) when there is nothing to resume
        """
        if fingerprint is None:
            return None, None
        entry = self._journal.get_upload(fingerprint)
        if entry is None:
            return None, None
        if entry.total_size != metadata.size:
            self._forget(fingerprint)
            return None, None

        session = UploadSession(
            session_handle=entry.session_uri,
            total_size=entry.total_size,
            content_type=entry.content_type,
            destination=destination,
        )
        try:
            result = await self._negotiator.query_status(session, token)
        except UploadCancelled:
            raise
        except DriveException as e:
            logger.info(f"Cannot resume {metadata.name} ({e}), starting a new session")
            self._forget(fingerprint)
            return None, None

        if result is not None:
            return None, result
        return session, None

    def _forget(self, fingerprint: Optional[str]) -> None:
        if fingerprint is not None and self._journal is not None:
            self._journal.remove_upload(fingerprint)
