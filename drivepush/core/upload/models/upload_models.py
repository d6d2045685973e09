"""
Data models for upload module.

Uses dataclasses for type-safe data structures.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, Union, Callable
from pathlib import Path

DEFAULT_CONTENT_TYPE = 'application/octet-stream'


class UploadState(str, Enum):
    """States of one logical upload."""
    IDLE = 'idle'
    ACQUIRING_CREDENTIAL = 'acquiring_credential'
    NEGOTIATING_SESSION = 'negotiating_session'
    TRANSFERRING = 'transferring'
    RETRYING = 'retrying'
    PERMISSIONING = 'permissioning'
    DONE = 'done'
    CANCELLED = 'cancelled'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.DONE, UploadState.CANCELLED, UploadState.FAILED)


class UploadPath(str, Enum):
    """Transfer path chosen for a file."""
    MULTIPART = 'multipart'
    RESUMABLE = 'resumable'


@dataclass(frozen=True)
class FileMetadata:
    """
    Declared file metadata sent to the API.

    Attributes:
        name: File name in the destination folder
        size: Declared size in bytes
        content_type: MIME type
    """
    name: str
    size: int
    content_type: str = DEFAULT_CONTENT_TYPE

    def to_resource(self, destination: str) -> Dict[str, Any]:
        """Drive file resource for the upload request body."""
        return {
            'name': self.name,
            'mimeType': self.content_type,
            'parents': [destination],
        }


@dataclass(frozen=True)
class ChunkInfo:
    """
    Information about a file chunk.

    Attributes:
        index: Chunk index
        start: Start position in bytes
        end: End position in bytes (exclusive)
    """
    index: int
    start: int
    end: int

    @property
    def size(self) -> int:
        """Returns chunk size."""
        return self.end - self.start

    def content_range(self, total: int) -> str:
        """Content-Range header value (inclusive end)."""
        return f"bytes {self.start}-{self.end - 1}/{total}"


@dataclass
class UploadSession:
    """
    State of one resumable transfer.

    Created once per file transfer and mutated only by the chunk loop
    advancing ``next_offset``.

    Attributes:
        session_handle: Resumable session URI
        total_size: File size in bytes
        content_type: MIME type sent with every chunk
        destination: Parent folder id
        next_offset: First byte not yet acknowledged by the server
    """
    session_handle: str
    total_size: int
    content_type: str
    destination: str
    next_offset: int = 0

    @property
    def is_complete(self) -> bool:
        return self.next_offset >= self.total_size


@dataclass(frozen=True)
class UploadResult:
    """
    Result of a successful upload.

    Attributes:
        remote_id: Drive file id
        display_name: File name as stored
        view_link: Browser link
        download_link: Direct download link (may be empty)
        byte_size: Stored size in bytes
        response: Raw API response
    """
    remote_id: str
    display_name: str
    view_link: str
    download_link: str
    byte_size: int
    response: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_response(
        cls,
        data: Dict[str, Any],
        fallback_size: int = 0
    ) -> 'UploadResult':
        """Create from a Drive file resource ``{id, name, webViewLink, ...}``."""
        size = data.get('size')
        return cls(
            remote_id=data.get('id', ''),
            display_name=data.get('name', ''),
            view_link=data.get('webViewLink', ''),
            download_link=data.get('webContentLink') or '',
            byte_size=int(size) if size is not None else fallback_size,
            response=data
        )


@dataclass(frozen=True)
class ProgressEvent:
    """
    Upload progress information.

    Attributes:
        bytes_sent: Bytes transferred so far
        total_bytes: Total file size
        percent_complete: Integer percentage 0-100
    """
    bytes_sent: int
    total_bytes: int
    percent_complete: int

    @classmethod
    def of(cls, bytes_sent: int, total_bytes: int) -> 'ProgressEvent':
        if total_bytes <= 0:
            percent = 100
        else:
            # floor: only a finished transfer reports 100
            percent = bytes_sent * 100 // total_bytes
        return cls(bytes_sent, total_bytes, max(0, min(100, percent)))

    @property
    def is_complete(self) -> bool:
        return self.percent_complete >= 100


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class UploadRequest:
    """
    One upload as requested by a caller.

    Attributes:
        source: Path to the file, or raw bytes
        destination: Parent folder id
        upload_key: Optional registry key used for cancellation
        rename_to: Optional name to store the file under
        content_type: Optional MIME type (guessed from the name otherwise)
        on_progress: Optional progress callback
    """
    source: Union[str, Path, bytes]
    destination: str
    upload_key: Optional[str] = None
    rename_to: Optional[str] = None
    content_type: Optional[str] = None
    on_progress: Optional[ProgressCallback] = None

    def __post_init__(self):
        if isinstance(self.source, str):
            self.source = Path(self.source)
        if isinstance(self.source, (bytes, bytearray)) and not self.rename_to:
            raise ValueError("In-memory uploads need a file name (rename_to)")
        if not self.destination:
            raise ValueError("Destination folder id is required")

    @property
    def name(self) -> str:
        if self.rename_to:
            return self.rename_to
        return self.source.name
