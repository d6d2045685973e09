"""Upload models."""
from .upload_models import (
    UploadState,
    UploadPath,
    FileMetadata,
    ChunkInfo,
    UploadSession,
    UploadResult,
    ProgressEvent,
    ProgressCallback,
    UploadRequest,
    DEFAULT_CONTENT_TYPE,
)

__all__ = [
    'UploadState',
    'UploadPath',
    'FileMetadata',
    'ChunkInfo',
    'UploadSession',
    'UploadResult',
    'ProgressEvent',
    'ProgressCallback',
    'UploadRequest',
    'DEFAULT_CONTENT_TYPE',
]
