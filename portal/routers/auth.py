"""Session endpoints: login, logout and the current identity."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from portal.auth import SessionUser, issue_token, require_auth, verify_password
from portal.deps import get_app_settings, get_sessions
from portal.errors import UnauthorizedError
from shared.config import Settings
from shared.models.user import User

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=1, max_length=256)


def _format_user(user_id, email: str, name: str | None, role: str) -> dict:
    return {"id": str(user_id), "email": email, "name": name, "role": role}


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    sessions: async_sessionmaker = Depends(get_sessions),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """Verify credentials and start a session (cookie + bearer token)."""
    async with sessions() as session:
        result = await session.execute(
            select(User).where(func.lower(User.email) == body.email.strip().lower())
        )
        user = result.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.password_hash):
        logger.info("login_failed", email=body.email)
        raise UnauthorizedError("Invalid email or password")

    token = issue_token(user.id, user.email, user.name, user.role, settings)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.jwt_expiry_hours * 3600,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    logger.info("login_succeeded", user_id=str(user.id))
    return {
        "token": token,
        "user": _format_user(user.id, user.email, user.name, user.role),
    }


@router.post("/logout")
async def logout(
    response: Response,
    settings: Settings = Depends(get_app_settings),
) -> dict:
    response.delete_cookie(settings.session_cookie_name)
    return {"success": True}


@router.get("/me")
async def me(user: SessionUser = Depends(require_auth)) -> dict:
    return _format_user(user.user_id, user.email, user.name, user.role)
