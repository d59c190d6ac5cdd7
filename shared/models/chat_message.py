"""Chat message model for the building-wide message board."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.models.base import Base, utcnow


class ChatMessage(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    # User UUID as a string, or the reserved system reporter id
    author_id: Mapped[str] = mapped_column(String, index=True)
    author_name: Mapped[str | None] = mapped_column(String, default=None)
    content: Mapped[str] = mapped_column(Text)

    reply_to_id: Mapped[uuid.UUID | None] = mapped_column(default=None)
    reply_to_content: Mapped[str | None] = mapped_column(Text, default=None)
    reply_to_author_name: Mapped[str | None] = mapped_column(String, default=None)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(default=None)
