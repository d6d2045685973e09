"""
Authorizers.

An authorizer is whatever can produce a fresh delegated-access token.
The interactive consent UI lives outside this library; applications
plug it in through CallbackAuthorizer.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Union
from urllib.parse import urlencode

from ..api.config import DriveConfig
from ..api.transport import HttpTransport
from ..exceptions import AuthRequired, DriveRequestError, error_detail
from ..logging import get_logger

logger = get_logger('drivepush.auth')


@dataclass(frozen=True)
class TokenGrant:
    """
    Result of a successful authorization.

    Attributes:
        access_token: Bearer token
        expires_in: Lifetime in seconds (None means the 3600s default)
    """
    access_token: str
    expires_in: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TokenGrant':
        """Create from an OAuth token response."""
        expires_in = data.get('expires_in')
        return cls(
            access_token=data.get('access_token', ''),
            expires_in=int(expires_in) if expires_in is not None else None
        )


class Authorizer(Protocol):
    """Protocol for token sources."""

    async def authorize(self) -> TokenGrant:
        """
        Obtain a fresh token.

        Raises:
            AuthRequired: If authorization did not succeed
        """
        ...

    async def revoke(self, token: str) -> None:
        """Revoke a token (best effort)."""
        ...


class RefreshTokenAuthorizer:
    """
    Exchanges a long-lived OAuth refresh token for access tokens.

    Example:
        >>> authorizer = RefreshTokenAuthorizer(
        ...     transport, client_id, client_secret, refresh_token
        ... )
        >>> grant = await authorizer.authorize()
    """

    FORM_HEADERS = {'Content-Type': 'application/x-www-form-urlencoded'}

    def __init__(
        self,
        transport: HttpTransport,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        config: Optional[DriveConfig] = None
    ):
        self._transport = transport
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._config = config or DriveConfig.default()

    async def authorize(self) -> TokenGrant:
        body = urlencode({
            'grant_type': 'refresh_token',
            'client_id': self._client_id,
            'client_secret': self._client_secret,
            'refresh_token': self._refresh_token,
        }).encode()
        response = await self._transport.request(
            'POST',
            self._config.token_endpoint,
            headers=self.FORM_HEADERS,
            data=body
        )
        if not response.ok:
            detail = error_detail(response.body, f"HTTP {response.status}")
            raise AuthRequired(f"Token refresh failed: {detail}", response.status)

        grant = TokenGrant.from_dict(response.json())
        if not grant.access_token:
            raise AuthRequired("Token endpoint returned no access token", response.status)
        logger.info(f"Access token refreshed (expires in {grant.expires_in}s)")
        return grant

    async def revoke(self, token: str) -> None:
        response = await self._transport.request(
            'POST',
            self._config.revoke_endpoint,
            headers=self.FORM_HEADERS,
            data=urlencode({'token': token}).encode()
        )
        if not response.ok:
            raise DriveRequestError(
                f"Token revoke failed: {error_detail(response.body, 'HTTP ' + str(response.status))}",
                response.status
            )
        logger.info("Access token revoked")


GrantLike = Union[TokenGrant, Mapping[str, Any]]


class CallbackAuthorizer:
    """
    Adapts application supplied coroutine functions into an Authorizer.

    The callback may return a TokenGrant or an OAuth style mapping with
    ``access_token`` and ``expires_in``.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[GrantLike]],
        revoke_callback: Optional[Callable[[str], Awaitable[None]]] = None
    ):
        self._callback = callback
        self._revoke_callback = revoke_callback

    async def authorize(self) -> TokenGrant:
        result = await self._callback()
        if isinstance(result, TokenGrant):
            return result
        if isinstance(result, Mapping):
            return TokenGrant.from_dict(result)
        raise AuthRequired(f"Authorizer returned unexpected value: {type(result).__name__}")

    async def revoke(self, token: str) -> None:
        if self._revoke_callback is not None:
            await self._revoke_callback(token)
