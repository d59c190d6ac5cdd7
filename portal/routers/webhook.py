"""Detector webhook for automated arrival and departure sightings."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError

from portal.deps import get_app_settings, get_webhook_service
from portal.errors import InvalidInputError, UnauthorizedError
from portal.services.webhook import WebhookService, verify_webhook_secret
from shared.config import Settings
from shared.schemas.webhook import webhook_payload_adapter

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["webhook"])


@router.post("/webhook")
async def detector_webhook(
    request: Request,
    authorization: str | None = Header(default=None),
    webhooks: WebhookService = Depends(get_webhook_service),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """Authenticate, validate, then dispatch on the payload's ``event`` field."""
    if not verify_webhook_secret(authorization, settings.webhook_secret):
        logger.warning(
            "webhook_rejected",
            remote=request.client.host if request.client else "unknown",
        )
        raise UnauthorizedError("Unauthorized - invalid webhook secret")

    raw = await request.body()
    try:
        payload = webhook_payload_adapter.validate_json(raw)
    except ValidationError as e:
        try:
            event_name = json.loads(raw).get("event")
        except (ValueError, AttributeError):
            event_name = None
        logger.info("webhook_invalid_payload", event_type=event_name, errors=e.error_count())
        if event_name is not None and event_name not in ("arrival", "departure"):
            raise InvalidInputError(f"Unknown event type: {event_name}")
        raise InvalidInputError("Invalid webhook payload")

    return await webhooks.handle(payload)
