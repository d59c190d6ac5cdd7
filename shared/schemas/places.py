"""Admin request schemas for places and sub-places."""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import Field

from shared.schemas.common import CamelModel

PlaceType = Literal["unit", "outdoor", "building_common"]


class PlaceCreate(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    place_type: PlaceType = "building_common"
    external_id: str | None = Field(default=None, max_length=64)
    top: str | None = None
    left: str | None = None
    width: str | None = None
    height: str | None = None
    display_order: int = 0
    is_active: bool = True


class PlaceUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    place_type: PlaceType | None = None
    external_id: str | None = Field(default=None, max_length=64)
    top: str | None = None
    left: str | None = None
    width: str | None = None
    height: str | None = None
    display_order: int | None = None
    is_active: bool | None = None


class SubPlaceCreate(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    owner_id: uuid.UUID | None = None
    display_order: int = 0


class SubPlaceUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    owner_id: uuid.UUID | None = None
    display_order: int | None = None
