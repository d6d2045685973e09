"""Upload services module."""
from .file_service import FileValidator, AsyncFileReader, MemoryFileReader
from .session_service import (
    SessionNegotiator,
    choose_upload_path,
    parse_range_end,
)
from .chunk_service import ChunkUploader
from .multipart_service import MultipartUploader, encode_multipart_related
from .permission_service import PermissionGranter

__all__ = [
    'FileValidator',
    'AsyncFileReader',
    'MemoryFileReader',
    'SessionNegotiator',
    'choose_upload_path',
    'parse_range_end',
    'ChunkUploader',
    'MultipartUploader',
    'encode_multipart_related',
    'PermissionGranter',
]
