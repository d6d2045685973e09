"""
Custom exceptions for Drive upload operations.

This module defines the error taxonomy surfaced to callers.
"""
import json
from typing import Optional, Any


class DriveException(Exception):
    """Base exception for all Drive-related errors."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            status: HTTP status code (if available)
        """
        self.status = status
        self.message = message
        super().__init__(message)


class AuthRequired(DriveException):
    """No valid credential exists and re-authorization did not succeed."""
    pass


class AuthDenied(DriveException):
    """The remote API rejected the credential."""
    pass


class SessionInitError(DriveException):
    """A resumable upload session could not be opened."""
    pass


class ChunkUploadError(DriveException):
    """A chunk was rejected by the upload session."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        offset: Optional[int] = None
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            status: Last HTTP status returned for the chunk
            offset: Start offset of the failed chunk
        """
        self.offset = offset
        super().__init__(message, status)


class NetworkError(DriveException):
    """Transport-level failure: no usable response was received."""
    pass


class DriveRequestError(DriveException):
    """Exception raised for any other failed API request."""
    pass


class UploadCancelled(DriveException):
    """The upload was aborted by the caller."""

    def __init__(self, upload_key: Optional[str] = None) -> None:
        self.upload_key = upload_key
        suffix = f": {upload_key}" if upload_key else ""
        super().__init__(f"Upload cancelled{suffix}")


def error_detail(body: Any, fallback: str = "") -> str:
    """
    Extract the API's own error message from a response body.

    Drive errors look like ``{"error": {"code": 403, "message": "..."}}``.

    Args:
        body: Raw response body (bytes, str or already decoded JSON)
        fallback: Text used when no message can be found

    Returns:
        Human-readable error detail
    """
    data = body
    if isinstance(body, (bytes, bytearray)):
        body = body.decode('utf-8', errors='replace')
    if isinstance(body, str):
        try:
            data = json.loads(body)
        except ValueError:
            return body.strip() or fallback
    if isinstance(data, dict):
        error = data.get('error')
        if isinstance(error, dict) and error.get('message'):
            return str(error['message'])
        if isinstance(error, str):
            return data.get('error_description') or error
    return fallback
