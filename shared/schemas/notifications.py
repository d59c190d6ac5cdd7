"""Push notification schemas, handed off to the delivery worker via Redis pub/sub."""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, field_validator

from shared.schemas.common import CamelModel

NotificationCategory = Literal["message", "arrival", "departure", "system"]

_HHMM = re.compile(r"^\d{1,2}:\d{2}$")


class PushNotification(BaseModel):
    """A push message addressed to one user's subscribed devices."""

    user_id: str  # recipient
    title: str
    body: str
    category: NotificationCategory
    url: str = "/"
    tag: str | None = None
    renotify: bool = False
    require_interaction: bool = False


class NotificationPreferencesUpdate(CamelModel):
    enable_messages: bool | None = None
    enable_arrival: bool | None = None
    enable_departure: bool | None = None
    quiet_hours_enabled: bool | None = None
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None

    @field_validator("quiet_hours_start", "quiet_hours_end")
    @classmethod
    def _hhmm(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        if not _HHMM.match(v):
            raise ValueError("Expected HH:MM")
        hours, minutes = (int(p) for p in v.split(":"))
        if hours > 23 or minutes > 59:
            raise ValueError("Expected HH:MM")
        return f"{hours:02d}:{minutes:02d}"
