"""Signed-in resident's own activity."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from portal.auth import SessionUser, require_auth
from portal.deps import get_stats_service
from portal.services.stats import UserStatsService

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/stats")
async def user_stats(
    user: SessionUser = Depends(require_auth),
    stats: UserStatsService = Depends(get_stats_service),
) -> dict:
    return await stats.user_stats(user.user_id)
