"""Per-user push notification preferences."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from shared.models.base import Base, utcnow


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    enable_messages: Mapped[bool] = mapped_column(default=True)
    enable_arrival: Mapped[bool] = mapped_column(default=True)
    enable_departure: Mapped[bool] = mapped_column(default=True)

    quiet_hours_enabled: Mapped[bool] = mapped_column(default=False)
    quiet_hours_start: Mapped[str | None] = mapped_column(String, default=None)  # "HH:MM"
    quiet_hours_end: Mapped[str | None] = mapped_column(String, default=None)

    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)
