"""
API configuration module.

Provides configuration for the Drive upload client.
Open for extension through custom configurations.
"""
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

# Resumable chunks must be multiples of this size
RESUMABLE_ALIGNMENT = 256 * 1024

DEFAULT_CHUNK_SIZE = 16 * 1024 * 1024
SMALL_FILE_THRESHOLD = 5 * 1024 * 1024
PROGRESS_INTERVAL = 0.5

UPLOAD_FIELDS = 'id,name,webViewLink,webContentLink,size'


@dataclass
class TimeoutConfig:
    """
    Timeout configuration.

    A multi-gigabyte transfer can take hours, so there is no total
    timeout by default; each chunk is bounded by ``sock_read`` instead.
    """
    total: Optional[float] = None  # Total request timeout
    connect: float = 30.0  # Connection timeout
    sock_read: float = 300.0  # Socket read timeout
    sock_connect: float = 30.0  # Socket connect timeout

    def to_aiohttp_timeout(self):
        """Convert to aiohttp ClientTimeout."""
        import aiohttp
        return aiohttp.ClientTimeout(
            total=self.total,
            connect=self.connect,
            sock_read=self.sock_read,
            sock_connect=self.sock_connect
        )


@dataclass
class RetryConfig:
    """
    Retry configuration.

    Controls retry behavior for failed remote calls: delays are
    1s, 2s, 4s with the defaults.
    """
    max_retries: int = 3
    base_delay: float = 1.0
    exponential_base: float = 2.0

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay before retry ``attempt`` (1-based)."""
        return self.base_delay * (self.exponential_base ** (attempt - 1))


@dataclass
class DriveConfig:
    """
    Complete client configuration.

    Centralizes all configuration options for the Drive upload client.
    """
    # Endpoints
    upload_endpoint: str = 'https://www.googleapis.com/upload/drive/v3/files'
    api_base: str = 'https://www.googleapis.com/drive/v3'
    token_endpoint: str = 'https://oauth2.googleapis.com/token'
    revoke_endpoint: str = 'https://oauth2.googleapis.com/revoke'

    # User agent
    user_agent: str = 'drivepush/1.0.0'

    # Upload behaviour
    chunk_size: int = DEFAULT_CHUNK_SIZE
    small_file_threshold: int = SMALL_FILE_THRESHOLD
    progress_interval: float = PROGRESS_INTERVAL

    # Address granted reader access on every uploaded file
    overseer_email: Optional[str] = None

    # Sub-configurations
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)

    # Additional headers
    extra_headers: Dict[str, str] = field(default_factory=dict)

    # Connection pool settings
    limit_per_host: int = 10
    limit: int = 100

    def __post_init__(self):
        if self.chunk_size <= 0 or self.chunk_size % RESUMABLE_ALIGNMENT:
            raise ValueError(
                f"Chunk size must be a positive multiple of {RESUMABLE_ALIGNMENT} bytes"
            )
        if self.small_file_threshold < 0:
            raise ValueError("Small file threshold cannot be negative")

    @classmethod
    def default(cls) -> 'DriveConfig':
        """Create default configuration."""
        return cls()

    def get_connector_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for aiohttp TCPConnector."""
        return {
            'limit': self.limit,
            'limit_per_host': self.limit_per_host,
        }

    def get_session_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for aiohttp ClientSession."""
        headers = {
            'User-Agent': self.user_agent,
            **self.extra_headers
        }

        return {
            'headers': headers,
            'timeout': self.timeout.to_aiohttp_timeout(),
        }
