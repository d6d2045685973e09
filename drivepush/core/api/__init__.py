"""Drive API plumbing: configuration, transport, retry and events."""
from .config import (
    DriveConfig,
    TimeoutConfig,
    RetryConfig,
    RESUMABLE_ALIGNMENT,
    DEFAULT_CHUNK_SIZE,
    SMALL_FILE_THRESHOLD,
)
from .transport import HttpTransport, AiohttpTransport, TransportResponse
from .retry import RetryStrategy, ExponentialBackoffStrategy, RetryGovernor
from .events import EventEmitter

__all__ = [
    # Configuration
    'DriveConfig',
    'TimeoutConfig',
    'RetryConfig',
    'RESUMABLE_ALIGNMENT',
    'DEFAULT_CHUNK_SIZE',
    'SMALL_FILE_THRESHOLD',

    # Transport
    'HttpTransport',
    'AiohttpTransport',
    'TransportResponse',

    # Retry
    'RetryStrategy',
    'ExponentialBackoffStrategy',
    'RetryGovernor',

    # Events
    'EventEmitter',
]
