"""Automated sightings from the camera detector webhook.

An ``arrival`` opens a report at the provisioned place (like a manual
sighting, but written by the system reporter) and announces it in chat.
A ``departure`` closes the report its arrival opened.

Departure matching rule: among the subject's open reports, prefer the one
whose notes carry the visit marker ``(visit <visit_id>)`` written at
arrival; otherwise take the open report whose entry time is closest to the
departure's ``arrival_time``, within the configured tolerance.
"""

from __future__ import annotations

import hmac
from datetime import timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from portal.errors import InvalidInputError, NotFoundError
from portal.services.locations import LocationService
from portal.services.messages import MessageService
from portal.services.notifier import Notifier
from shared.config import Settings, display_timezone
from shared.models.location_report import LocationReport
from shared.models.place import Place, SubPlace
from shared.schemas.webhook import ArrivalEvent, DepartureEvent

logger = structlog.get_logger()


def verify_webhook_secret(authorization: str | None, expected: str) -> bool:
    """Check the shared secret, given raw or as ``Bearer <secret>``.

    An unconfigured secret rejects every request.
    """
    if not expected:
        logger.error("webhook_secret_not_configured")
        return False
    if not authorization:
        return False
    token = authorization[7:] if authorization.startswith("Bearer ") else authorization
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def visit_marker(visit_id: str) -> str:
    return f"(visit {visit_id})"


class WebhookService:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        locations: LocationService,
        messages: MessageService,
        notifier: Notifier,
        settings: Settings,
    ):
        self.session_factory = session_factory
        self.locations = locations
        self.messages = messages
        self.notifier = notifier
        self.settings = settings

    async def handle(self, payload: ArrivalEvent | DepartureEvent) -> dict:
        if isinstance(payload, ArrivalEvent):
            return await self.handle_arrival(payload)
        return await self.handle_departure(payload)

    async def handle_arrival(self, event: ArrivalEvent) -> dict:
        settings = self.settings
        place, sub_place = await self._provisioned_place()

        report = await self.locations.report_location(
            settings.webhook_subject_id,
            place.id,
            settings.system_reporter_id,
            reporter_role="system",
            sub_place_id=sub_place.id if sub_place else None,
            entry_time=event.timestamp,
            notes=f"Detected by camera {visit_marker(event.visit_id)}",
        )
        logger.info(
            "webhook_arrival_recorded",
            visit_id=event.visit_id,
            report_id=report["id"],
        )

        spotted_at = event.timestamp.astimezone(display_timezone(settings.timezone)).strftime("%H:%M")
        try:
            await self.messages.post_system_message(
                f"🚨 {settings.subject_display_name} detected at "
                f"{report['locationName']}! Spotted at {spotted_at} 🐱"
            )
        except Exception as e:
            logger.warning("webhook_chat_announcement_failed", visit_id=event.visit_id, error=str(e))

        if sub_place is not None and sub_place.owner_id is not None:
            await self.notifier.send(
                str(sub_place.owner_id),
                title=f"{settings.subject_display_name} has arrived!",
                body=f"{settings.subject_display_name} just arrived at {report['locationName']}",
                category="arrival",
                tag="subject-arrival",
                require_interaction=True,
            )

        return {
            "success": True,
            "message": "Arrival event processed",
            "reportId": report["id"],
        }

    async def handle_departure(self, event: DepartureEvent) -> dict:
        settings = self.settings
        subject_id = settings.webhook_subject_id

        async with self.session_factory() as session:
            report = await self._match_open_report(session, subject_id, event)
            if report is None:
                logger.info(
                    "webhook_departure_unmatched",
                    visit_id=event.visit_id,
                    arrival_time=event.arrival_time.isoformat(),
                )
                return {
                    "success": True,
                    "message": "Departure event processed",
                    "matched": False,
                }

            if event.departure_time < report.entry_time:
                raise InvalidInputError("departure_time is before the visit's arrival")

            summary = f"Duration: {event.duration_human}, Detections: {event.detection_count}"
            report.exit_time = event.departure_time
            report.notes = f"{report.notes} | {summary}" if report.notes else summary
            await session.commit()

            place = await session.get(Place, report.place_id)
            sub_place = (
                await session.get(SubPlace, report.sub_place_id)
                if report.sub_place_id
                else None
            )

        logger.info(
            "webhook_departure_recorded",
            visit_id=event.visit_id,
            report_id=str(report.id),
            duration_seconds=event.duration_seconds,
        )

        if sub_place is not None and sub_place.owner_id is not None:
            name = f"{place.name} - {sub_place.name}" if place else sub_place.name
            await self.notifier.send(
                str(sub_place.owner_id),
                title=f"{settings.subject_display_name} has left",
                body=f"{settings.subject_display_name} just left {name}",
                category="departure",
                tag="subject-departure",
            )

        return {
            "success": True,
            "message": "Departure event processed",
            "matched": True,
            "reportId": str(report.id),
        }

    async def _provisioned_place(self) -> tuple[Place, SubPlace | None]:
        settings = self.settings
        async with self.session_factory() as session:
            result = await session.execute(
                select(Place).where(Place.external_id == settings.webhook_place_external_id)
            )
            place = result.scalar_one_or_none()
            if place is None:
                raise NotFoundError(
                    f"Webhook place '{settings.webhook_place_external_id}' not found"
                )

            sub_place = None
            if settings.webhook_sub_place_name:
                result = await session.execute(
                    select(SubPlace).where(
                        SubPlace.place_id == place.id,
                        SubPlace.name == settings.webhook_sub_place_name,
                    )
                )
                sub_place = result.scalars().first()
                if sub_place is None:
                    raise NotFoundError(
                        f"Webhook sub-place '{settings.webhook_sub_place_name}' not found"
                    )
        return place, sub_place

    async def _match_open_report(
        self, session, subject_id: str, event: DepartureEvent
    ) -> LocationReport | None:
        open_reports = select(LocationReport).where(
            LocationReport.subject_id == subject_id,
            LocationReport.exit_time.is_(None),
        )

        result = await session.execute(
            open_reports.where(
                LocationReport.notes.contains(visit_marker(event.visit_id), autoescape=True)
            )
            .order_by(LocationReport.entry_time.desc())
            .limit(1)
        )
        report = result.scalar_one_or_none()
        if report is not None:
            return report

        tolerance = timedelta(seconds=self.settings.webhook_match_tolerance_seconds)
        result = await session.execute(
            open_reports.where(
                LocationReport.entry_time >= event.arrival_time - tolerance,
                LocationReport.entry_time <= event.arrival_time + tolerance,
            )
        )
        candidates = result.scalars().all()
        if not candidates:
            return None
        return min(candidates, key=lambda r: abs(r.entry_time - event.arrival_time))
