"""
drivepush - Async resumable uploads to Google Drive.

Usage:
    >>> from drivepush import DriveClient
    >>>
    >>> async with DriveClient("drive", refresh_token=token,
    ...                        client_id=cid, client_secret=secret) as drive:
    ...     result = await drive.upload_file("video.mp4", folder_id)
    ...     print(result.view_link)
"""
import logging
from .client import DriveClient, extract_drive_file_id, get_download_url

# Configuration
from .core.api import (
    DriveConfig,
    TimeoutConfig,
    RetryConfig,
    RetryGovernor,
)

# Authorization
from .core.auth import (
    Authorizer,
    TokenGrant,
    RefreshTokenAuthorizer,
    CallbackAuthorizer,
    CredentialStore,
)

# Session management
from .core.session import (
    CredentialStorage,
    Credential,
    SQLiteStorage,
    MemoryStorage,
)

# Uploads
from .core.upload import (
    UploadState,
    UploadResult,
    ProgressEvent,
)

# Errors
from .core.exceptions import (
    DriveException,
    AuthRequired,
    AuthDenied,
    SessionInitError,
    ChunkUploadError,
    NetworkError,
    DriveRequestError,
    UploadCancelled,
)

__version__ = '1.0.0'


def setup_logging(level=logging.INFO):
    """
    Configure logging for drivepush modules.

    Args:
        level: Logging level (default: logging.INFO)
    """
    loggers = [
        'drivepush',
        'drivepush.client',
        'drivepush.auth',
        'drivepush.retry',
        'drivepush.transport',
        'drivepush.upload',
        'drivepush.upload.chunk',
        'drivepush.upload.session',
        'drivepush.upload.multipart',
        'drivepush.upload.permissions',
        'drivepush.upload.coordinator',
    ]

    for logger_name in loggers:
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        logger.propagate = True


__all__ = [
    'DriveClient',
    'extract_drive_file_id',
    'get_download_url',
    'DriveConfig',
    'TimeoutConfig',
    'RetryConfig',
    'RetryGovernor',
    'Authorizer',
    'TokenGrant',
    'RefreshTokenAuthorizer',
    'CallbackAuthorizer',
    'CredentialStore',
    'CredentialStorage',
    'Credential',
    'SQLiteStorage',
    'MemoryStorage',
    'UploadState',
    'UploadResult',
    'ProgressEvent',
    'DriveException',
    'AuthRequired',
    'AuthDenied',
    'SessionInitError',
    'ChunkUploadError',
    'NetworkError',
    'DriveRequestError',
    'UploadCancelled',
    'setup_logging',
    '__version__',
]
