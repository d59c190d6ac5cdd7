"""Session authentication for the web app.

Sessions are HS256 JWTs carried either in the session cookie set by
``POST /api/auth/login`` or in an ``Authorization: Bearer`` header.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request

from portal.errors import ForbiddenError, UnauthorizedError
from shared.config import Settings, get_settings

JWT_ALGORITHM = "HS256"

ADMIN_ROLES = {"admin"}


@dataclass
class SessionUser:
    """Authenticated resident. Injected by require_auth / require_admin."""

    user_id: uuid.UUID
    email: str
    name: str | None
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def display_name(self) -> str:
        return self.name or self.email


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def _jwt_secret(settings: Settings) -> str:
    secret = settings.jwt_secret
    if not secret:
        raise HTTPException(status_code=503, detail="Session auth not configured")
    return secret


def issue_token(
    user_id: uuid.UUID,
    email: str,
    name: str | None,
    role: str,
    settings: Settings | None = None,
) -> str:
    """Sign a session token for a resident."""
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "name": name,
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=settings.jwt_expiry_hours),
    }
    return jwt.encode(payload, _jwt_secret(settings), algorithm=JWT_ALGORITHM)


def decode_token(token: str, settings: Settings | None = None) -> SessionUser:
    """Decode and validate a session JWT, returning a SessionUser."""
    secret = _jwt_secret(settings or get_settings())
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
        user_id = uuid.UUID(payload["sub"])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Session expired")
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise UnauthorizedError("Invalid session")

    return SessionUser(
        user_id=user_id,
        email=payload.get("email", ""),
        name=payload.get("name"),
        role=payload.get("role", "user"),
    )


def _request_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def _extract_token(request: Request, settings: Settings) -> str | None:
    authorization = request.headers.get("authorization", "")
    if authorization.startswith("Bearer "):
        return authorization[7:]
    return request.cookies.get(settings.session_cookie_name)


async def require_auth(request: Request) -> SessionUser:
    """FastAPI dependency: resolve the caller's identity or reject with 401."""
    settings = _request_settings(request)
    token = _extract_token(request, settings)
    if not token:
        raise UnauthorizedError()
    return decode_token(token, settings)


async def require_admin(user: SessionUser = Depends(require_auth)) -> SessionUser:
    """FastAPI dependency: like require_auth, but only for admins."""
    if not user.is_admin:
        raise ForbiddenError("Admin permission required")
    return user
