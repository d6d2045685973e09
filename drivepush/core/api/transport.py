"""
HTTP transport.

Thin async wrapper over aiohttp that normalises every exchange into a
TransportResponse and every transport-level failure into NetworkError.
"""
import json
import asyncio
from dataclasses import dataclass, field
from typing import (
    Any, AsyncIterator, Callable, Dict, Mapping, Optional, Protocol
)
import aiohttp

from .config import DriveConfig
from ..exceptions import NetworkError
from ..logging import get_logger

SentCallback = Callable[[int, int], None]


@dataclass
class TransportResponse:
    """
    Normalised HTTP response.

    Attributes:
        status: HTTP status code
        headers: Response headers
        body: Raw response body
    """
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b''

    @property
    def ok(self) -> bool:
        """True for 2xx responses."""
        return 200 <= self.status < 300

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    def json(self) -> Any:
        """Decode the body as JSON (empty body decodes to an empty dict)."""
        if not self.body:
            return {}
        return json.loads(self.body)


class HttpTransport(Protocol):
    """Protocol for the HTTP layer used by every remote call."""

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        data: Optional[bytes] = None,
        on_sent: Optional[SentCallback] = None
    ) -> TransportResponse:
        """
        Perform one HTTP exchange.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Request headers
            params: Query string parameters
            data: Request body
            on_sent: Optional callback(bytes_sent, total) fired while
                the body is being written

        Returns:
            TransportResponse

        Raises:
            NetworkError: If no response was received
        """
        ...

    async def close(self) -> None:
        ...


class AiohttpTransport:
    """
    aiohttp based transport.

    Reuses one ClientSession for every request (critical for performance).
    Redirects are never followed: 308 is a resumable-protocol status.
    """

    SEND_BLOCK = 256 * 1024

    def __init__(
        self,
        config: Optional[DriveConfig] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize transport.

        Args:
            config: Client configuration (uses defaults if not provided)
            session: Optional shared session
        """
        self._config = config or DriveConfig.default()
        self._session = session
        self._owns_session = session is None
        self._logger = get_logger('drivepush.transport')

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session is created and open."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(**self._config.get_connector_kwargs()),
                **self._config.get_session_kwargs()
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close session if we own it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _stream(
        self,
        data: bytes,
        on_sent: SentCallback
    ) -> AsyncIterator[bytes]:
        total = len(data)
        view = memoryview(data)
        for start in range(0, total, self.SEND_BLOCK):
            end = min(start + self.SEND_BLOCK, total)
            yield bytes(view[start:end])
            on_sent(end, total)

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        data: Optional[bytes] = None,
        on_sent: Optional[SentCallback] = None
    ) -> TransportResponse:
        session = await self._ensure_session()
        headers = dict(headers or {})
        body: Any = data

        if data is not None and on_sent is not None:
            headers['Content-Length'] = str(len(data))
            body = self._stream(data, on_sent)

        try:
            async with session.request(
                method,
                url,
                headers=headers,
                params=params,
                data=body,
                allow_redirects=False
            ) as response:
                payload = await response.read()
                self._logger.debug(f"{method} {url} -> {response.status}")
                return TransportResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    body=payload
                )
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Request timed out: {method} {url}") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error during {method} {url}: {e}") from e
