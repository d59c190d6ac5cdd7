"""Hunger meter endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from portal.auth import SessionUser, require_auth
from portal.deps import get_app_settings, get_hunger_service
from portal.services.hunger import HungerService
from shared.config import Settings
from shared.schemas.hunger import FeedRequest

router = APIRouter(prefix="/api/hunger", tags=["hunger"])


@router.get("/status")
async def hunger_status(
    subject_id: str | None = Query(None, alias="subjectId"),
    user: SessionUser = Depends(require_auth),
    hunger: HungerService = Depends(get_hunger_service),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    return await hunger.get_status(subject_id or settings.default_subject_id)


@router.post("/feed")
async def feed(
    body: FeedRequest,
    user: SessionUser = Depends(require_auth),
    hunger: HungerService = Depends(get_hunger_service),
) -> dict:
    """Record that the subject was just fed."""
    return await hunger.feed(body.subject_id, str(user.user_id))
