"""
Identity provider abstraction for a Supabase/GoTrue-compatible auth service
and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests

from skinscan.errors import Forbidden, IdentityProviderError, Unauthenticated

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """An authenticated account as reported by the identity provider."""

    id: str
    email: str
    name: Optional[str] = None


def require_owner(caller: Identity, owner_id: str, action: str = "access") -> None:
    """Raise Forbidden unless the caller owns the resource."""
    if caller.id != owner_id:
        raise Forbidden(f"Forbidden: Cannot {action} other users' resources")


class IdentityProvider(Protocol):
    """Defines the operations the API needs from the identity provider."""

    def get_user(self, token: str) -> Identity:
        ...

    def create_user(self, email: str, password: str, name: str) -> Identity:
        ...

    def find_user_by_email(self, email: str) -> Optional[Identity]:
        ...


@dataclass
class InMemoryIdentityProvider:
    """Test double for identity-provider interactions."""

    users: dict[str, Identity] = field(default_factory=dict)
    passwords: dict[str, str] = field(default_factory=dict)
    tokens: dict[str, str] = field(default_factory=dict)

    def get_user(self, token: str) -> Identity:
        user_id = self.tokens.get(token)
        if user_id is None or user_id not in self.users:
            raise Unauthenticated()
        return self.users[user_id]

    def create_user(self, email: str, password: str, name: str) -> Identity:
        normalized = email.strip().lower()
        if self.find_user_by_email(normalized):
            raise IdentityProviderError(
                "A user with this email address has already been registered",
                status_code=400,
            )
        identity = Identity(id=str(uuid.uuid4()), email=normalized, name=name)
        self.users[identity.id] = identity
        self.passwords[identity.id] = password
        return identity

    def find_user_by_email(self, email: str) -> Optional[Identity]:
        normalized = email.strip().lower()
        for identity in self.users.values():
            if identity.email == normalized:
                return identity
        return None

    def issue_token(self, user_id: str) -> str:
        token = secrets.token_urlsafe(24)
        self.tokens[token] = user_id
        return token

    def revoke_token(self, token: str) -> None:
        self.tokens.pop(token, None)

    def reset(self) -> None:
        self.users.clear()
        self.passwords.clear()
        self.tokens.clear()


def _provider_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Identity provider rejected the request"
    for key in ("msg", "message", "error_description", "error"):
        value = body.get(key) if isinstance(body, dict) else None
        if isinstance(value, str) and value:
            return value[:200]
    return "Identity provider rejected the request"


def _identity_from_payload(payload: dict) -> Identity:
    metadata = payload.get("user_metadata") or {}
    return Identity(
        id=payload["id"],
        email=payload.get("email") or "",
        name=metadata.get("name"),
    )


@dataclass
class SupabaseIdentityProvider:
    """
    Talks to the GoTrue REST API exposed by Supabase.

    ``service_key`` is the service-role key; it authorizes the admin endpoints
    and is sent as the ``apikey`` header on every call.
    """

    base_url: str
    service_key: str
    timeout: float = 5.0

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        self._session = requests.Session()

    def _headers(self, bearer: str) -> dict:
        return {"apikey": self.service_key, "Authorization": f"Bearer {bearer}"}

    def _request(self, method: str, path: str, bearer: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/auth/v1{path}"
        try:
            return self._session.request(
                method, url, headers=self._headers(bearer), timeout=self.timeout, **kwargs
            )
        except requests.Timeout as exc:
            logger.warning("Identity provider timed out on %s %s", method, path)
            raise IdentityProviderError("Identity provider timed out") from exc
        except requests.RequestException as exc:
            logger.warning("Identity provider unreachable on %s %s: %s", method, path, exc)
            raise IdentityProviderError() from exc

    def get_user(self, token: str) -> Identity:
        response = self._request("GET", "/user", token)
        if response.status_code in (401, 403, 404):
            raise Unauthenticated()
        if response.status_code >= 500:
            raise IdentityProviderError()
        if not response.ok:
            raise Unauthenticated()
        try:
            return _identity_from_payload(response.json())
        except (ValueError, KeyError, TypeError) as exc:
            raise IdentityProviderError("Malformed identity provider response") from exc

    def create_user(self, email: str, password: str, name: str) -> Identity:
        response = self._request(
            "POST",
            "/admin/users",
            self.service_key,
            json={
                "email": email,
                "password": password,
                "user_metadata": {"name": name},
                # No mail server is configured, so accounts are confirmed up front.
                "email_confirm": True,
            },
        )
        if response.status_code >= 500:
            raise IdentityProviderError()
        if not response.ok:
            raise IdentityProviderError(_provider_message(response), status_code=400)
        try:
            return _identity_from_payload(response.json())
        except (ValueError, KeyError, TypeError) as exc:
            raise IdentityProviderError("Malformed identity provider response") from exc

    def find_user_by_email(self, email: str) -> Optional[Identity]:
        response = self._request(
            "GET",
            "/admin/users",
            self.service_key,
            params={"page": 1, "per_page": 1000},
        )
        if not response.ok:
            raise IdentityProviderError()
        normalized = email.strip().lower()
        for user in response.json().get("users", []):
            if (user.get("email") or "").lower() == normalized:
                return _identity_from_payload(user)
        return None
