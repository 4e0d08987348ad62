"""
Bearer-token authentication and resource-ownership checks.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from skinscan.dependencies import get_identity_provider
from skinscan.errors import Unauthenticated
from skinscan.identity import Identity, IdentityProvider, require_owner

__all__ = ["authenticate", "bearer_scheme", "get_current_user", "require_owner"]

# auto_error is off so a missing header surfaces as our own 401 body.
bearer_scheme = HTTPBearer(auto_error=False)


def authenticate(token: str | None, identity: IdentityProvider) -> Identity:
    """Resolve a bearer token to the caller, or raise Unauthenticated."""
    if not token or not token.strip():
        raise Unauthenticated("Unauthorized: No token provided")
    return identity.get_user(token.strip())


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    if credentials is None:
        raise Unauthenticated("Unauthorized: No token provided")
    return authenticate(credentials.credentials, identity)
