"""Hunger meter for tracked subjects.

Hunger rises linearly from the stored level at ``decay_rate_per_hour``
points per hour and is capped at 100. Feeding resets it to 0. Reading the
meter never writes; the level is derived from the last stored value.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from portal.errors import InvalidInputError, NotFoundError
from shared.models.subject import TrackedSubject

logger = structlog.get_logger()

MAX_HUNGER = 100.0


def current_hunger(
    level: float, last_update: datetime, now: datetime, decay_rate_per_hour: float
) -> int:
    """Hunger at ``now``, rounded to a whole point."""
    hours = max(0.0, (now - last_update).total_seconds() / 3600)
    return round(min(MAX_HUNGER, level + hours * decay_rate_per_hour))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class HungerService:
    def __init__(self, session_factory: async_sessionmaker, decay_rate_per_hour: float = 10.0):
        self.session_factory = session_factory
        self.decay_rate_per_hour = decay_rate_per_hour

    async def get_status(self, subject_id: str, now: datetime | None = None) -> dict:
        now = now or datetime.now(timezone.utc)
        async with self.session_factory() as session:
            subject = await session.get(TrackedSubject, subject_id)
        if subject is None:
            raise NotFoundError("Subject not found")

        return {
            "subjectId": subject.id,
            "hungerLevel": current_hunger(
                subject.hunger_level, subject.last_hunger_update, now, self.decay_rate_per_hour
            ),
            "lastFedAt": _iso(subject.last_fed_at),
            "lastFedBy": subject.last_fed_by,
            "lastHungerUpdate": _iso(subject.last_hunger_update),
        }

    async def feed(self, subject_id: str, fed_by: str, now: datetime | None = None) -> dict:
        """Reset the meter to 0."""
        if not subject_id:
            raise InvalidInputError("subjectId is required")
        now = now or datetime.now(timezone.utc)

        async with self.session_factory() as session:
            subject = await session.get(TrackedSubject, subject_id)
            if subject is None:
                raise NotFoundError("Subject not found")
            hunger_before = current_hunger(
                subject.hunger_level, subject.last_hunger_update, now, self.decay_rate_per_hour
            )
            subject.hunger_level = 0.0
            subject.last_fed_at = now
            subject.last_fed_by = fed_by
            subject.last_hunger_update = now
            await session.commit()

        logger.info(
            "subject_fed", subject_id=subject_id, fed_by=fed_by, hunger_before=hunger_before
        )
        return {
            "success": True,
            "message": f"{subject.name} has been fed!",
            "hungerLevel": 0,
            "lastFedAt": _iso(now),
        }
