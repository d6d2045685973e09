"""
Upload module.

Resumable and multipart uploads with retry, cancellation and progress.
"""
from .coordinator import UploadCoordinator
from .registry import CancelToken, UploadRegistry
from .progress import throttle_progress
from .models import (
    UploadState,
    UploadPath,
    FileMetadata,
    ChunkInfo,
    UploadSession,
    UploadResult,
    ProgressEvent,
    UploadRequest,
)
from .strategies import FixedSizeChunkingStrategy

__all__ = [
    'UploadCoordinator',
    'CancelToken',
    'UploadRegistry',
    'throttle_progress',
    'UploadState',
    'UploadPath',
    'FileMetadata',
    'ChunkInfo',
    'UploadSession',
    'UploadResult',
    'ProgressEvent',
    'UploadRequest',
    'FixedSizeChunkingStrategy',
]
