"""Credential lifecycle: store and token sources."""
from .authorizers import (
    Authorizer,
    TokenGrant,
    RefreshTokenAuthorizer,
    CallbackAuthorizer,
)
from .store import CredentialStore

__all__ = [
    'Authorizer',
    'TokenGrant',
    'RefreshTokenAuthorizer',
    'CallbackAuthorizer',
    'CredentialStore',
]
