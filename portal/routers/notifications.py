"""Push notification preference endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from portal.auth import SessionUser, require_auth
from portal.deps import get_sessions
from shared.models.notification_preference import NotificationPreference
from shared.schemas.notifications import NotificationPreferencesUpdate

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _format_preferences(pref: NotificationPreference) -> dict:
    return {
        "enableMessages": pref.enable_messages,
        "enableArrival": pref.enable_arrival,
        "enableDeparture": pref.enable_departure,
        "quietHoursEnabled": pref.quiet_hours_enabled,
        "quietHoursStart": pref.quiet_hours_start,
        "quietHoursEnd": pref.quiet_hours_end,
    }


def _defaults(user: SessionUser) -> NotificationPreference:
    return NotificationPreference(
        user_id=user.user_id,
        enable_messages=True,
        enable_arrival=True,
        enable_departure=True,
        quiet_hours_enabled=False,
        quiet_hours_start=None,
        quiet_hours_end=None,
    )


@router.get("/preferences")
async def get_preferences(
    user: SessionUser = Depends(require_auth),
    sessions: async_sessionmaker = Depends(get_sessions),
) -> dict:
    async with sessions() as session:
        pref = await session.get(NotificationPreference, user.user_id)
    return _format_preferences(pref or _defaults(user))


@router.put("/preferences")
async def update_preferences(
    body: NotificationPreferencesUpdate,
    user: SessionUser = Depends(require_auth),
    sessions: async_sessionmaker = Depends(get_sessions),
) -> dict:
    async with sessions() as session:
        pref = await session.get(NotificationPreference, user.user_id)
        if pref is None:
            pref = _defaults(user)
            session.add(pref)
        for field, value in body.model_dump(exclude_unset=True).items():
            setattr(pref, field, value)
        await session.commit()
    return _format_preferences(pref)
