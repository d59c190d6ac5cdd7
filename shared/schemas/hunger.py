"""Hunger meter request schema."""

from __future__ import annotations

from pydantic import Field

from shared.schemas.common import CamelModel


class FeedRequest(CamelModel):
    subject_id: str = Field(min_length=1, max_length=64)
