"""Location endpoints and the live location stream."""

from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, StreamingResponse

from portal.auth import SessionUser, require_auth
from portal.deps import (
    get_app_settings,
    get_location_hub,
    get_location_service,
)
from portal.services.live_updates import LiveUpdateHub, event_stream, sse_response
from portal.services.locations import LocationService
from shared.config import Settings
from shared.schemas.common import ensure_utc
from shared.schemas.locations import ReportLocationRequest

logger = structlog.get_logger()

router = APIRouter(prefix="/api/locations", tags=["locations"])


@router.post("/report", status_code=201)
async def report_location(
    body: ReportLocationRequest,
    user: SessionUser = Depends(require_auth),
    locations: LocationService = Depends(get_location_service),
) -> dict:
    """Record that the subject was just seen at a place."""
    return await locations.report_location(
        body.subject_id,
        body.place_id,
        str(user.user_id),
        reporter_role=user.role,
        sub_place_id=body.sub_place_id,
        entry_time=body.entry_time,
        notes=body.notes,
    )


@router.get("/current")
async def current_location(
    subject_id: str | None = Query(None, alias="subjectId"),
    user: SessionUser = Depends(require_auth),
    locations: LocationService = Depends(get_location_service),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """The subject's open report, or a "not spotted yet" sentinel."""
    subject_id = subject_id or settings.default_subject_id
    current = await locations.get_current_location(subject_id)
    if current is None:
        return {
            "subjectId": subject_id,
            "placeId": None,
            "subPlaceId": None,
            "entryTime": None,
            "exitTime": None,
            "message": f"{settings.subject_display_name} has not been spotted yet",
        }
    return current


@router.get("/timeline")
async def timeline(
    subject_id: str | None = Query(None, alias="subjectId"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    before: datetime | None = Query(None),
    user: SessionUser = Depends(require_auth),
    locations: LocationService = Depends(get_location_service),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """Most recent reports first."""
    reports = await locations.get_timeline(
        subject_id or settings.default_subject_id,
        limit=limit,
        offset=offset,
        before=ensure_utc(before),
    )
    return JSONResponse(content=reports)


@router.get("/events")
async def location_events(
    subject_id: str | None = Query(None, alias="subjectId"),
    user: SessionUser = Depends(require_auth),
    hub: LiveUpdateHub = Depends(get_location_hub),
    settings: Settings = Depends(get_app_settings),
) -> StreamingResponse:
    """Server-sent events: ``connected``, then ``location-update`` per sighting."""
    subject_id = subject_id or settings.default_subject_id
    logger.info("location_stream_requested", subject_id=subject_id, user_id=str(user.user_id))
    stream = event_stream(
        hub,
        {"type": "connected", "subjectId": subject_id},
        keepalive_seconds=settings.sse_keepalive_seconds,
        accept=lambda event: event.get("subjectId") == subject_id,
    )
    return sse_response(stream)
