"""Location report model: one row per continuous stay of a subject at a place."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from shared.models.base import Base, utcnow


class LocationReport(Base):
    __tablename__ = "location_reports"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    subject_id: Mapped[str] = mapped_column(String)
    # User UUID as a string, or the reserved system reporter id
    reporter_id: Mapped[str] = mapped_column(String)
    place_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("places.id", ondelete="CASCADE")
    )
    sub_place_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("sub_places.id", ondelete="CASCADE"), default=None
    )
    entry_time: Mapped[datetime]
    # NULL marks the open report: the subject's current location
    exit_time: Mapped[datetime | None] = mapped_column(default=None)
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    @property
    def is_open(self) -> bool:
        return self.exit_time is None

    __table_args__ = (
        Index("ix_location_reports_subject_entry", "subject_id", "entry_time"),
        # At most one open report per subject
        Index(
            "uq_location_reports_open_subject",
            "subject_id",
            unique=True,
            postgresql_where=text("exit_time IS NULL"),
            sqlite_where=text("exit_time IS NULL"),
        ),
    )
