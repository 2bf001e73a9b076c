"""Access-token helpers shared by the HTTP API and the Socket.IO namespace.

HS256 tokens carry the user id in ``sub`` and are validated against the
configured issuer.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional
from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from app.config import get_settings
from app.errors import AuthenticationError

_bearer = HTTPBearer(auto_error=False)


def encode_access(user_id: UUID, *, ttl_minutes: int | None = None) -> str:
    """Issue an access token for ``user_id``."""
    settings = get_settings()
    now = int(time.time())
    ttl = ttl_minutes if ttl_minutes is not None else settings.ACCESS_TOKEN_TTL_MINUTES
    body: Dict[str, Any] = {
        "sub": str(user_id),
        "iss": settings.JWT_ISSUER,
        "iat": now,
        "exp": now + ttl * 60,
    }
    return jwt.encode(body, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access(token: str) -> UUID:
    """Validate ``token`` and return the user id it was issued for."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=settings.JWT_ISSUER,
            leeway=5,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
        return UUID(str(payload["sub"]))
    except (InvalidTokenError, ValueError) as exc:
        raise AuthenticationError("Invalid or expired token") from exc


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> UUID:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing bearer token")
    return decode_access(credentials.credentials)


def _header(scope: dict, name: str) -> Optional[str]:
    target = name.encode().lower()
    for key, value in scope.get("headers", []):
        if key.lower() == target:
            return value.decode()
    return None


def authenticate_socket(environ: dict, auth: Optional[dict]) -> UUID:
    """Resolve the user of a Socket.IO handshake.

    The token is read from the client's ``auth.token`` first and the
    ``Authorization: Bearer`` header second.
    """
    token = None
    if isinstance(auth, dict):
        token = auth.get("token")
    if not token:
        scope = environ.get("asgi.scope", environ)
        header = _header(scope, "authorization") or environ.get("HTTP_AUTHORIZATION")
        if header and header.lower().startswith("bearer "):
            token = header[7:].strip()
    if not token:
        raise AuthenticationError("Missing credentials")
    return decode_access(str(token))
