"""FastAPI web app for sightings, chat and live updates."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from portal.errors import register_error_handlers
from portal.routers import (
    auth,
    health,
    hunger,
    locations,
    messages,
    notifications,
    places,
    user,
    webhook,
)
from portal.services.hunger import HungerService
from portal.services.live_updates import LiveUpdateHub, RedisLiveUpdateBridge
from portal.services.locations import LocationService
from portal.services.messages import MessageService
from portal.services.notifier import Notifier
from portal.services.stats import UserStatsService
from portal.services.webhook import WebhookService
from shared.config import Settings, get_settings
from shared.database import dispose_engine, get_engine, init_models, open_session
from shared.redis import channel_name, close_redis, get_redis

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()


async def _start_bridges(app: FastAPI) -> list[asyncio.Task]:
    """Relay live updates through Redis so every process sees every write."""
    settings: Settings = app.state.settings
    redis_client = await app.state.redis_getter()
    tasks = []
    for topic, hub in (("locations", app.state.location_hub), ("messages", app.state.message_hub)):
        bridge = RedisLiveUpdateBridge(
            hub, redis_client, channel_name(settings.live_updates_channel_prefix, topic)
        )
        hub.attach_relay(bridge.forward)
        tasks.append(asyncio.create_task(bridge.listen()))
    return tasks


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    uses_default_db = app.state.session_factory is open_session

    if settings.auto_create_schema and uses_default_db:
        await init_models(get_engine())

    bridge_tasks: list[asyncio.Task] = []
    if settings.live_updates_backend == "redis":
        bridge_tasks = await _start_bridges(app)
    logger.info("portal_startup_complete", live_updates=settings.live_updates_backend)

    yield

    for hub in (app.state.location_hub, app.state.message_hub):
        hub.attach_relay(None)
    for task in bridge_tasks:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    await close_redis()
    if uses_default_db:
        await dispose_engine()
    logger.info("portal_shutdown_complete")


def create_app(
    settings: Settings | None = None,
    session_factory=None,
    redis_getter=None,
) -> FastAPI:
    """Build the app and its per-process services.

    The live-update hubs are created here, once per process, and shared by
    every request through ``app.state``.
    """
    settings = settings or get_settings()
    session_factory = session_factory or open_session
    redis_getter = redis_getter or get_redis

    app = FastAPI(title="Petwatch", version="1.0.0", lifespan=lifespan)
    register_error_handlers(app)

    location_hub = LiveUpdateHub("locations")
    message_hub = LiveUpdateHub("messages")
    notifier = Notifier(
        session_factory,
        channel=settings.push_notifications_channel,
        redis_getter=redis_getter,
        tz=settings.timezone,
    )
    location_service = LocationService(
        session_factory,
        location_hub,
        system_reporter_id=settings.system_reporter_id,
        system_reporter_name=settings.system_reporter_name,
    )
    message_service = MessageService(
        session_factory,
        message_hub,
        notifier,
        system_author_id=settings.system_reporter_id,
        system_author_name=settings.system_reporter_name,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.redis_getter = redis_getter
    app.state.location_hub = location_hub
    app.state.message_hub = message_hub
    app.state.notifier = notifier
    app.state.location_service = location_service
    app.state.message_service = message_service
    app.state.webhook_service = WebhookService(
        session_factory, location_service, message_service, notifier, settings
    )
    app.state.hunger_service = HungerService(
        session_factory, decay_rate_per_hour=settings.hunger_decay_rate_per_hour
    )
    app.state.stats_service = UserStatsService(session_factory)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(locations.router)
    app.include_router(places.router)
    app.include_router(messages.router)
    app.include_router(hunger.router)
    app.include_router(user.router)
    app.include_router(notifications.router)
    app.include_router(webhook.router)
    return app


app = create_app()
