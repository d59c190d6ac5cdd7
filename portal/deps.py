"""FastAPI dependencies resolving the per-process services held on ``app.state``."""

from __future__ import annotations

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from portal.services.hunger import HungerService
from portal.services.live_updates import LiveUpdateHub
from portal.services.locations import LocationService
from portal.services.messages import MessageService
from portal.services.stats import UserStatsService
from portal.services.webhook import WebhookService
from shared.config import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_sessions(request: Request) -> async_sessionmaker:
    return request.app.state.session_factory


def get_location_hub(request: Request) -> LiveUpdateHub:
    return request.app.state.location_hub


def get_message_hub(request: Request) -> LiveUpdateHub:
    return request.app.state.message_hub


def get_location_service(request: Request) -> LocationService:
    return request.app.state.location_service


def get_message_service(request: Request) -> MessageService:
    return request.app.state.message_service


def get_webhook_service(request: Request) -> WebhookService:
    return request.app.state.webhook_service


def get_hunger_service(request: Request) -> HungerService:
    return request.app.state.hunger_service


def get_stats_service(request: Request) -> UserStatsService:
    return request.app.state.stats_service
