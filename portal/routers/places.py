"""Place directory and admin place / sub-place management."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from portal.auth import SessionUser, require_admin, require_auth
from portal.deps import get_sessions
from portal.errors import ConflictError, NotFoundError
from shared.models.place import Place, SubPlace
from shared.models.user import User
from shared.schemas.places import PlaceCreate, PlaceUpdate, SubPlaceCreate, SubPlaceUpdate

logger = structlog.get_logger()

router = APIRouter(tags=["places"])


def _format_sub_place(sub_place: SubPlace, owner: User | None = None) -> dict:
    return {
        "id": str(sub_place.id),
        "placeId": str(sub_place.place_id),
        "name": sub_place.name,
        "ownerId": str(sub_place.owner_id) if sub_place.owner_id else None,
        "ownerName": (owner.name or owner.email) if owner else None,
        "displayOrder": sub_place.display_order,
    }


def _format_place(place: Place, owners: dict[uuid.UUID, User] | None = None) -> dict:
    owners = owners or {}
    return {
        "id": str(place.id),
        "externalId": place.external_id,
        "name": place.name,
        "type": place.place_type,
        "top": place.top,
        "left": place.left,
        "width": place.width,
        "height": place.height,
        "displayOrder": place.display_order,
        "isActive": place.is_active,
        "subPlaces": [
            _format_sub_place(sp, owners.get(sp.owner_id)) for sp in place.sub_places
        ],
    }


async def _ensure_user(session, user_id: uuid.UUID | None) -> None:
    if user_id is not None and await session.get(User, user_id) is None:
        raise NotFoundError("Owner not found")


@router.get("/api/places")
async def list_places(
    user: SessionUser = Depends(require_auth),
    sessions: async_sessionmaker = Depends(get_sessions),
) -> JSONResponse:
    """Active places in display order, each with its sub-places."""
    async with sessions() as session:
        result = await session.execute(
            select(Place)
            .options(selectinload(Place.sub_places))
            .where(Place.is_active.is_(True))
            .order_by(Place.display_order, Place.name)
        )
        places = result.scalars().all()

        owner_ids = {sp.owner_id for p in places for sp in p.sub_places if sp.owner_id}
        owners: dict[uuid.UUID, User] = {}
        if owner_ids:
            owner_result = await session.execute(select(User).where(User.id.in_(owner_ids)))
            owners = {u.id: u for u in owner_result.scalars().all()}

    return JSONResponse(content=[_format_place(p, owners) for p in places])


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.post("/api/admin/places", status_code=201)
async def create_place(
    body: PlaceCreate,
    admin: SessionUser = Depends(require_admin),
    sessions: async_sessionmaker = Depends(get_sessions),
) -> dict:
    async with sessions() as session:
        place = Place(**body.model_dump())
        session.add(place)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise ConflictError("A place with this external id already exists")
        result = await session.execute(
            select(Place).options(selectinload(Place.sub_places)).where(Place.id == place.id)
        )
        place = result.scalar_one()

    logger.info("place_created", place_id=str(place.id), by=str(admin.user_id))
    return _format_place(place)


@router.patch("/api/admin/places/{place_id}")
async def update_place(
    place_id: uuid.UUID,
    body: PlaceUpdate,
    admin: SessionUser = Depends(require_admin),
    sessions: async_sessionmaker = Depends(get_sessions),
) -> dict:
    async with sessions() as session:
        result = await session.execute(
            select(Place).options(selectinload(Place.sub_places)).where(Place.id == place_id)
        )
        place = result.scalar_one_or_none()
        if place is None:
            raise NotFoundError("Place not found")

        for field, value in body.model_dump(exclude_unset=True).items():
            setattr(place, field, value)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise ConflictError("A place with this external id already exists")

    logger.info("place_updated", place_id=str(place_id), by=str(admin.user_id))
    return _format_place(place)


@router.delete("/api/admin/places/{place_id}", status_code=204)
async def delete_place(
    place_id: uuid.UUID,
    admin: SessionUser = Depends(require_admin),
    sessions: async_sessionmaker = Depends(get_sessions),
) -> Response:
    """Delete a place; its sub-places and location reports go with it."""
    async with sessions() as session:
        place = await session.get(Place, place_id)
        if place is None:
            raise NotFoundError("Place not found")
        await session.delete(place)
        await session.commit()

    logger.info("place_deleted", place_id=str(place_id), by=str(admin.user_id))
    return Response(status_code=204)


@router.post("/api/admin/places/{place_id}/sub-places", status_code=201)
async def create_sub_place(
    place_id: uuid.UUID,
    body: SubPlaceCreate,
    admin: SessionUser = Depends(require_admin),
    sessions: async_sessionmaker = Depends(get_sessions),
) -> dict:
    async with sessions() as session:
        if await session.get(Place, place_id) is None:
            raise NotFoundError("Place not found")
        await _ensure_user(session, body.owner_id)

        sub_place = SubPlace(place_id=place_id, **body.model_dump())
        session.add(sub_place)
        await session.commit()

    logger.info("sub_place_created", sub_place_id=str(sub_place.id), place_id=str(place_id))
    return _format_sub_place(sub_place)


@router.patch("/api/admin/sub-places/{sub_place_id}")
async def update_sub_place(
    sub_place_id: uuid.UUID,
    body: SubPlaceUpdate,
    admin: SessionUser = Depends(require_admin),
    sessions: async_sessionmaker = Depends(get_sessions),
) -> dict:
    async with sessions() as session:
        sub_place = await session.get(SubPlace, sub_place_id)
        if sub_place is None:
            raise NotFoundError("Sub-place not found")

        changes = body.model_dump(exclude_unset=True)
        if "owner_id" in changes:
            await _ensure_user(session, changes["owner_id"])
        for field, value in changes.items():
            setattr(sub_place, field, value)
        await session.commit()

    logger.info("sub_place_updated", sub_place_id=str(sub_place_id), by=str(admin.user_id))
    return _format_sub_place(sub_place)


@router.delete("/api/admin/sub-places/{sub_place_id}", status_code=204)
async def delete_sub_place(
    sub_place_id: uuid.UUID,
    admin: SessionUser = Depends(require_admin),
    sessions: async_sessionmaker = Depends(get_sessions),
) -> Response:
    async with sessions() as session:
        sub_place = await session.get(SubPlace, sub_place_id)
        if sub_place is None:
            raise NotFoundError("Sub-place not found")
        await session.delete(sub_place)
        await session.commit()

    logger.info("sub_place_deleted", sub_place_id=str(sub_place_id), by=str(admin.user_id))
    return Response(status_code=204)
