"""Pytest fixtures for drivepush tests."""
import asyncio
import inspect
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import pytest

from drivepush.core.api import DriveConfig, RetryGovernor, TransportResponse
from drivepush.core.auth import CredentialStore, TokenGrant
from drivepush.core.session import MemoryStorage

KIB = 1024
MIB = 1024 * 1024

SESSION_URI = 'https://www.googleapis.com/upload/drive/v3/files?uploadType=resumable&upload_id=session-1'

_CONTENT_RANGE_RE = re.compile(r'bytes (\d+)-(\d+)/(\d+)')


def json_response(status: int, data: Any, headers: Optional[Dict[str, str]] = None) -> TransportResponse:
    """Build a TransportResponse carrying a JSON body."""
    return TransportResponse(status=status, headers=headers or {}, body=json.dumps(data).encode())


def file_resource(file_id: str = 'file-1', name: str = 'video.mp4', size: Optional[int] = None) -> Dict[str, Any]:
    """Drive file resource as returned by a finished upload."""
    resource = {
        'id': file_id,
        'name': name,
        'webViewLink': f'https://drive.google.com/file/d/{file_id}/view',
        'webContentLink': f'https://drive.google.com/uc?id={file_id}&export=download',
    }
    if size is not None:
        resource['size'] = str(size)
    return resource


@dataclass
class RecordedRequest:
    """One request seen by FakeTransport."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)
    data: Optional[bytes] = None
    size: int = 0

    @property
    def target(self) -> str:
        if not self.params:
            return self.url
        return f"{self.url}?{urlencode(self.params)}"

    def json(self) -> Any:
        return json.loads(self.data)


class _Route:
    def __init__(self, method: str, fragment: str, responses: List[Any], repeat: bool):
        self.method = method
        self.fragment = fragment
        self.responses = responses
        self.repeat = repeat

    def matches(self, request: RecordedRequest) -> bool:
        return (
            bool(self.responses)
            and request.method == self.method
            and self.fragment in request.target
        )

    def next(self) -> Any:
        if self.repeat and len(self.responses) == 1:
            return self.responses[0]
        return self.responses.pop(0)


class FakeTransport:
    """
    Scripted in-memory transport.

    Routes match on method and a fragment of the URL plus query string.
    A response is a TransportResponse, an exception to raise, or a
    (sync or async) callable receiving the RecordedRequest.
    """

    KEEP_BODY_LIMIT = 1 * MIB

    def __init__(self):
        self.requests: List[RecordedRequest] = []
        self._routes: List[_Route] = []
        self.closed = False

    def add(self, method: str, fragment: str, *responses: Any, repeat: bool = False) -> 'FakeTransport':
        self._routes.append(_Route(method, fragment, list(responses), repeat))
        return self

    def sent(self, method: Optional[str] = None, fragment: str = '') -> List[RecordedRequest]:
        return [
            r for r in self.requests
            if (method is None or r.method == method) and fragment in r.target
        ]

    async def request(
        self,
        method,
        url,
        *,
        headers=None,
        params=None,
        data=None,
        on_sent=None
    ) -> TransportResponse:
        size = len(data) if data is not None else 0
        recorded = RecordedRequest(
            method=method,
            url=url,
            headers=dict(headers or {}),
            params=dict(params or {}),
            data=data if data is None or size <= self.KEEP_BODY_LIMIT else None,
            size=size,
        )
        self.requests.append(recorded)

        for route in self._routes:
            if route.matches(recorded):
                response = route.next()
                break
        else:
            raise AssertionError(f"Unexpected request: {method} {recorded.target}")

        if callable(response) and not isinstance(response, type):
            response = response(recorded)
            if inspect.isawaitable(response):
                response = await response
        if isinstance(response, BaseException):
            raise response

        if on_sent is not None and data is not None:
            on_sent(size // 2, size)
            on_sent(size, size)
        return response

    async def close(self) -> None:
        self.closed = True


def resumable_server(total: int, resource: Optional[Dict[str, Any]] = None):
    """
    Responder for chunk PUTs acting like a well-behaved session.

    Acknowledges every chunk with 308 and finishes with 200 on the last.
    """
    resource = resource or file_resource(size=total)

    def respond(request: RecordedRequest) -> TransportResponse:
        match = _CONTENT_RANGE_RE.match(request.headers.get('Content-Range', ''))
        assert match, f"Unexpected Content-Range: {request.headers.get('Content-Range')}"
        end = int(match.group(2))
        if end + 1 >= total:
            return json_response(200, resource)
        return TransportResponse(308, {'Range': f'bytes=0-{end}'})

    return respond


class CountingAuthorizer:
    """Authorizer issuing numbered tokens and counting calls."""

    def __init__(self, expires_in: Optional[int] = 3600, delay: float = 0.0):
        self.expires_in = expires_in
        self.delay = delay
        self.calls = 0
        self.revoked: List[str] = []

    async def authorize(self) -> TokenGrant:
        self.calls += 1
        number = self.calls
        if self.delay:
            await asyncio.sleep(self.delay)
        return TokenGrant(f'token-{number}', self.expires_in)

    async def revoke(self, token: str) -> None:
        self.revoked.append(token)


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def transport():
    """Scripted transport."""
    return FakeTransport()


@pytest.fixture
def storage():
    """In-memory credential storage."""
    return MemoryStorage()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def authorizer():
    return CountingAuthorizer()


@pytest.fixture
def credentials(storage, authorizer, clock):
    """Credential store over memory storage with a fake clock."""
    return CredentialStore(storage, authorizer, clock=clock)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def governor(sleeper):
    """Retry governor that never really sleeps."""
    return RetryGovernor(sleep=sleeper)


@pytest.fixture
def small_config():
    """Configuration with 256 KiB chunks and a 256 KiB multipart threshold."""
    return DriveConfig(chunk_size=256 * KIB, small_file_threshold=256 * KIB)
