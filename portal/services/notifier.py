"""Best-effort push notifications.

Notifications are filtered by the recipient's preferences and quiet hours,
then handed off to the push delivery worker by publishing a
``PushNotification`` on a Redis channel. Failures are logged and never
raised to the caller.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from shared.config import display_timezone
from shared.models.notification_preference import NotificationPreference
from shared.models.user import User
from shared.redis import get_redis
from shared.schemas.notifications import PushNotification

logger = structlog.get_logger()

# Preference flag consulted for each category; "system" only honours quiet hours
_CATEGORY_FLAGS = {
    "message": "enable_messages",
    "arrival": "enable_arrival",
    "departure": "enable_departure",
}


def parse_time_to_minutes(value: str | None) -> int | None:
    """Parse "HH:MM" into minutes since midnight; None if invalid."""
    if not value:
        return None
    parts = value.split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        return None
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def is_in_quiet_hours(pref: NotificationPreference, now: datetime) -> bool:
    """Whether ``now`` (local time) falls inside the user's quiet hours.

    Windows where start > end wrap past midnight (e.g. 22:00 to 07:00).
    Unparseable bounds disable quiet hours.
    """
    if not pref.quiet_hours_enabled:
        return False
    start = parse_time_to_minutes(pref.quiet_hours_start)
    end = parse_time_to_minutes(pref.quiet_hours_end)
    if start is None or end is None:
        return False

    current = now.hour * 60 + now.minute
    if start > end:
        return current >= start or current < end
    return start <= current < end


def should_deliver(pref: NotificationPreference | None, category: str, now: datetime) -> bool:
    if pref is None:
        return True
    if is_in_quiet_hours(pref, now):
        return False
    flag = _CATEGORY_FLAGS.get(category)
    if flag is None:
        return True
    return bool(getattr(pref, flag))


class Notifier:
    """Sends push notifications to residents."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        channel: str = "notifications:push",
        redis_getter: Callable[[], Awaitable] = get_redis,
        tz: str = "UTC",
    ):
        self.session_factory = session_factory
        self.channel = channel
        self.redis_getter = redis_getter
        self.tz = display_timezone(tz)

    def _local_now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self.tz)

    async def send(
        self,
        user_id: str,
        *,
        title: str,
        body: str,
        category: str,
        url: str = "/",
        tag: str | None = None,
        renotify: bool = False,
        require_interaction: bool = False,
        skip_preferences: bool = False,
    ) -> bool:
        """Queue a notification for one user. Returns True if it was handed off."""
        try:
            if not skip_preferences:
                pref = await self._load_preferences(user_id)
                if not should_deliver(pref, category, self._local_now()):
                    logger.debug("push_notification_suppressed", user_id=user_id, category=category)
                    return False

            notification = PushNotification(
                user_id=user_id,
                title=title,
                body=body,
                category=category,
                url=url,
                tag=tag,
                renotify=renotify,
                require_interaction=require_interaction,
            )
            redis_client = await self.redis_getter()
            await redis_client.publish(self.channel, notification.model_dump_json())
            logger.info("push_notification_queued", user_id=user_id, category=category)
            return True
        except Exception as e:
            logger.warning(
                "push_notification_failed",
                user_id=user_id,
                category=category,
                error=str(e),
            )
            return False

    async def broadcast(
        self,
        *,
        title: str,
        body: str,
        category: str,
        exclude: Iterable[str] = (),
        **options,
    ) -> int:
        """Notify every resident except ``exclude``. Returns how many were queued."""
        excluded = {str(user_id) for user_id in exclude}
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(User.id))
                recipients = [str(uid) for uid in result.scalars().all()]
        except Exception as e:
            logger.warning("push_broadcast_failed", category=category, error=str(e))
            return 0

        sent = 0
        for user_id in recipients:
            if user_id in excluded:
                continue
            if await self.send(user_id, title=title, body=body, category=category, **options):
                sent += 1
        return sent

    async def _load_preferences(self, user_id: str) -> NotificationPreference | None:
        try:
            uid = uuid.UUID(user_id)
        except ValueError:
            return None
        async with self.session_factory() as session:
            return await session.get(NotificationPreference, uid)
