"""Inbound detector webhook payloads, discriminated by ``event``."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from shared.schemas.common import ensure_utc


class ArrivalEvent(BaseModel):
    event: Literal["arrival"]
    visit_id: str = Field(min_length=1, max_length=128)
    timestamp: datetime
    snapshot_base64: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class DepartureEvent(BaseModel):
    event: Literal["departure"]
    visit_id: str = Field(min_length=1, max_length=128)
    arrival_time: datetime
    departure_time: datetime
    duration_seconds: float = Field(ge=0)
    duration_human: str
    detection_count: int = Field(ge=0)
    snapshot_base64: str | None = None

    @field_validator("arrival_time", "departure_time")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


WebhookPayload = Annotated[
    Union[ArrivalEvent, DepartureEvent], Field(discriminator="event")
]

webhook_payload_adapter: TypeAdapter[WebhookPayload] = TypeAdapter(WebhookPayload)
