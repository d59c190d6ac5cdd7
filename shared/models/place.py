"""Places and sub-places where a subject can be reported."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.models.base import Base, utcnow

PLACE_TYPES = ("unit", "outdoor", "building_common")


class Place(Base):
    __tablename__ = "places"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    # Stable key used by seed data and the detector webhook
    external_id: Mapped[str | None] = mapped_column(String, unique=True, default=None)
    name: Mapped[str] = mapped_column(String)
    place_type: Mapped[str] = mapped_column(String, default="building_common")

    # Position on the building map, as CSS percentages
    top: Mapped[str | None] = mapped_column(String, default=None)
    left: Mapped[str | None] = mapped_column(String, default=None)
    width: Mapped[str | None] = mapped_column(String, default=None)
    height: Mapped[str | None] = mapped_column(String, default=None)

    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    sub_places: Mapped[list[SubPlace]] = relationship(
        back_populates="place",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SubPlace.display_order",
    )


class SubPlace(Base):
    __tablename__ = "sub_places"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    place_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("places.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String)
    # Set for a resident's own unit; reports there are restricted to the owner
    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    place: Mapped[Place] = relationship(back_populates="sub_places")

    @property
    def is_owner_restricted(self) -> bool:
        return self.owner_id is not None
