"""Tracked subject (the building's pet) and its hunger meter."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from shared.models.base import Base, utcnow


class TrackedSubject(Base):
    __tablename__ = "subjects"

    # Same opaque key used by location reports, e.g. "rocky"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String)

    # 0 = just fed, 100 = starving. Stored value is as of last_hunger_update.
    hunger_level: Mapped[float] = mapped_column(default=0.0)
    last_hunger_update: Mapped[datetime] = mapped_column(default=utcnow)
    last_fed_at: Mapped[datetime | None] = mapped_column(default=None)
    last_fed_by: Mapped[str | None] = mapped_column(String, default=None)

    created_at: Mapped[datetime] = mapped_column(default=utcnow)
