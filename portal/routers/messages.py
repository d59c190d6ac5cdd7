"""Chat endpoints and the live message stream."""

from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, StreamingResponse

from portal.auth import SessionUser, require_auth
from portal.deps import get_app_settings, get_message_hub, get_message_service
from portal.services.live_updates import LiveUpdateHub, event_stream, sse_response
from portal.services.messages import MessageService
from shared.config import Settings
from shared.schemas.common import ensure_utc
from shared.schemas.messages import SendMessageRequest

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("")
async def list_messages(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    before: datetime | None = Query(None),
    user: SessionUser = Depends(require_auth),
    messages: MessageService = Depends(get_message_service),
) -> JSONResponse:
    """Newest first. Pass ``before`` (a timestamp) to page back through history."""
    items = await messages.list_messages(limit=limit, offset=offset, before=ensure_utc(before))
    return JSONResponse(content=items)


@router.post("", status_code=201)
async def send_message(
    body: SendMessageRequest,
    user: SessionUser = Depends(require_auth),
    messages: MessageService = Depends(get_message_service),
) -> dict:
    return await messages.post_message(
        str(user.user_id),
        user.display_name,
        body.content,
        reply_to_id=body.reply_to_id,
    )


@router.get("/unread-count")
async def unread_count(
    user: SessionUser = Depends(require_auth),
    messages: MessageService = Depends(get_message_service),
) -> dict:
    return await messages.unread_count(user.user_id)


@router.post("/mark-read")
async def mark_read(
    user: SessionUser = Depends(require_auth),
    messages: MessageService = Depends(get_message_service),
) -> dict:
    return await messages.mark_read(user.user_id)


@router.delete("/{message_id}")
async def delete_message(
    message_id: uuid.UUID,
    user: SessionUser = Depends(require_auth),
    messages: MessageService = Depends(get_message_service),
) -> dict:
    await messages.delete_message(message_id, str(user.user_id), is_admin=user.is_admin)
    return {"success": True}


@router.get("/events")
async def message_events(
    user: SessionUser = Depends(require_auth),
    hub: LiveUpdateHub = Depends(get_message_hub),
    settings: Settings = Depends(get_app_settings),
) -> StreamingResponse:
    """Server-sent events: ``connected``, ``new-message`` and ``message-deleted``."""
    stream = event_stream(
        hub,
        {"type": "connected"},
        keepalive_seconds=settings.sse_keepalive_seconds,
    )
    return sse_response(stream)
