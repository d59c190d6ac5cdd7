"""Location report request and live-update event schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import Field, field_validator

from shared.schemas.common import CamelModel, ensure_utc


class ReportLocationRequest(CamelModel):
    """Body of a manual sighting ("I see the subject at place X")."""

    subject_id: str = Field(min_length=1, max_length=64)
    place_id: uuid.UUID
    sub_place_id: uuid.UUID | None = None
    entry_time: datetime | None = None
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("entry_time")
    @classmethod
    def _entry_time_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class LocationUpdateEvent(CamelModel):
    """Broadcast to live-update clients after a report is written."""

    type: str = "location-update"
    subject_id: str
    report_id: uuid.UUID
    place_id: uuid.UUID
    sub_place_id: uuid.UUID | None = None
    entry_time: datetime
    place_name: str | None = None
    sub_place_name: str | None = None
