"""FastAPI authentication dependencies.

Handlers receive an explicit AuthContext instead of reading a global session.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass

import jwt
from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from jsa.auth.jwt import verify_token
from jsa.config import get_settings
from jsa.errors import Unauthorized

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Who is calling. ``user_id`` is None for service callers (admin, cron)."""

    user_id: str | None
    role: str


def _require_credentials(credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise Unauthorized("Missing authorization header")
    return credentials.credentials


def _matches_secret(token: str, secret: str) -> bool:
    # An unset secret disables the endpoint rather than accepting any token
    return bool(secret) and hmac.compare_digest(token.encode(), secret.encode())


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> AuthContext:
    """Verify the user's access token. Raises 401 on failure."""
    token = _require_credentials(credentials)
    try:
        payload = verify_token(token)
    except jwt.InvalidTokenError as e:
        raise Unauthorized(str(e) or "Invalid token") from e
    return AuthContext(user_id=str(payload["sub"]), role=payload.get("role", "authenticated"))


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> AuthContext:
    """Bearer token must equal the shared admin secret."""
    token = _require_credentials(credentials)
    if not _matches_secret(token, get_settings().admin_secret):
        raise Unauthorized("Invalid token")
    return AuthContext(user_id=None, role="admin")


async def require_cron(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> AuthContext:
    """Bearer token must equal the shared cron secret."""
    token = _require_credentials(credentials)
    if not _matches_secret(token, get_settings().cron_secret):
        raise Unauthorized("Invalid token")
    return AuthContext(user_id=None, role="cron")
