"""Pydantic schemas for the petwatch service."""

from shared.schemas.common import CamelModel, HealthResponse
from shared.schemas.hunger import FeedRequest
from shared.schemas.locations import LocationUpdateEvent, ReportLocationRequest
from shared.schemas.messages import MessageEvent, SendMessageRequest
from shared.schemas.notifications import PushNotification
from shared.schemas.webhook import ArrivalEvent, DepartureEvent, WebhookPayload

__all__ = [
    "ArrivalEvent",
    "CamelModel",
    "DepartureEvent",
    "FeedRequest",
    "HealthResponse",
    "LocationUpdateEvent",
    "MessageEvent",
    "PushNotification",
    "ReportLocationRequest",
    "SendMessageRequest",
    "WebhookPayload",
]
