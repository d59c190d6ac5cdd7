"""Chat message request and live-update event schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import Field, field_validator

from shared.schemas.common import CamelModel


class SendMessageRequest(CamelModel):
    content: str = Field(min_length=1, max_length=2000)
    reply_to_id: uuid.UUID | None = None

    @field_validator("content")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message cannot be empty")
        return v


class MessageEvent(CamelModel):
    """Broadcast to chat clients when a message is posted or deleted."""

    type: str  # new-message, message-deleted
    message_id: uuid.UUID
    content: str | None = None
    user_id: str | None = None
    user_name: str | None = None
    created_at: datetime | None = None
    deleted_at: datetime | None = None
    reply_to_id: uuid.UUID | None = None
    reply_to_content: str | None = None
    reply_to_user_name: str | None = None
