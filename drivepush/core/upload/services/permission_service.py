"""
Post-upload permissioning.

Grants read access once the bytes have landed. Best effort: the file is
already stored, so a failed grant is logged and never fails the upload.
"""
import asyncio
import json
from functools import partial
from typing import Any, Dict, Optional

from ...api.config import DriveConfig
from ...api.retry import RetryGovernor
from ...api.transport import HttpTransport
from ...auth import CredentialStore
from ...exceptions import AuthDenied, DriveRequestError, error_detail
from ...logging import get_logger


class PermissionGranter:
    """
    Creates Drive permissions on files and folders.

    Responsibilities:
    - "Anyone with the link can view" grants
    - Reader grants for an overseer address
    - Concurrent best-effort grants after an upload
    """

    def __init__(
        self,
        transport: HttpTransport,
        credentials: CredentialStore,
        governor: Optional[RetryGovernor] = None,
        config: Optional[DriveConfig] = None
    ):
        self._transport = transport
        self._credentials = credentials
        self._governor = governor or RetryGovernor()
        self._config = config or DriveConfig.default()
        self._logger = get_logger('drivepush.upload.permissions')

    async def _create_permission(
        self,
        file_id: str,
        permission: Dict[str, Any],
        notify: Optional[bool] = None
    ) -> Dict[str, Any]:
        credential = await self._credentials.ensure_valid()
        params = {}
        if notify is not None:
            params['sendNotificationEmail'] = 'true' if notify else 'false'

        response = await self._transport.request(
            'POST',
            f"{self._config.api_base}/files/{file_id}/permissions",
            params=params or None,
            headers={
                'Authorization': credential.authorization,
                'Content-Type': 'application/json',
            },
            data=json.dumps(permission).encode('utf-8')
        )
        if response.status == 401:
            self._credentials.invalidate()
            raise AuthDenied("Authorization rejected while setting permissions", 401)
        if not response.ok:
            detail = error_detail(response.body, f"HTTP {response.status}")
            raise DriveRequestError(
                f"Failed to set permission on {file_id}: {detail}",
                response.status
            )
        return response.json()

    async def make_public(self, file_id: str) -> None:
        """Allow anyone with the link to view ``file_id``."""
        await self._governor.run(
            partial(self._create_permission, file_id, {'type': 'anyone', 'role': 'reader'}),
            description=f"public permission on {file_id}"
        )
        self._logger.info(f"Made file {file_id} publicly viewable")

    async def share_with(self, file_id: str, email: str, role: str = 'reader') -> None:
        """Grant ``email`` explicit ``role`` access without a notification mail."""
        permission = {'type': 'user', 'role': role, 'emailAddress': email}
        await self._governor.run(
            partial(self._create_permission, file_id, permission, False),
            description=f"{role} permission for {email} on {file_id}"
        )
        self._logger.info(f"Shared {file_id} with {email}")

    async def grant_defaults(
        self,
        file_id: str,
        overseer_email: Optional[str] = None
    ) -> Dict[str, bool]:
        """
        Run the post-upload grants concurrently.

        Args:
            file_id: Uploaded file id
            overseer_email: Optional address granted reader access

        Returns:
            Mapping of grant label to success flag
        """
        grants = {'public': self.make_public(file_id)}
        if overseer_email:
            grants['overseer'] = self.share_with(file_id, overseer_email)

        results = await asyncio.gather(*grants.values(), return_exceptions=True)

        outcome = {}
        for label, result in zip(grants, results):
            if isinstance(result, BaseException):
                self._logger.warning(
                    f"Failed to set {label} permission on {file_id}, but upload succeeded: {result}"
                )
                outcome[label] = False
            else:
                outcome[label] = True
        return outcome
