"""Location tracking: record sightings, answer "where is it now", read the timeline."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from portal.services.live_updates import LiveUpdateHub
from shared.models.location_report import LocationReport
from shared.models.place import Place, SubPlace
from shared.models.user import User
from shared.schemas.common import ensure_utc
from shared.schemas.locations import LocationUpdateEvent

logger = structlog.get_logger()

MAX_TIMELINE_LIMIT = 200

# Roles allowed to report in a unit they do not own
PRIVILEGED_ROLES = {"admin", "system"}


def _parse_uuid(value: str | None) -> uuid.UUID | None:
    """Return a UUID if value is valid, else None."""
    try:
        return uuid.UUID(value) if value else None
    except ValueError:
        return None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def location_name(place: Place, sub_place: SubPlace | None) -> str:
    return f"{place.name} - {sub_place.name}" if sub_place else place.name


def format_report(
    report: LocationReport,
    place: Place,
    sub_place: SubPlace | None,
    reporter_name: str | None = None,
) -> dict:
    return {
        "id": str(report.id),
        "subjectId": report.subject_id,
        "reporterId": report.reporter_id,
        "reporterName": reporter_name,
        "placeId": str(report.place_id),
        "placeName": place.name,
        "placeType": place.place_type,
        "subPlaceId": str(report.sub_place_id) if report.sub_place_id else None,
        "subPlaceName": sub_place.name if sub_place else None,
        "locationName": location_name(place, sub_place),
        "entryTime": _iso(report.entry_time),
        "exitTime": _iso(report.exit_time),
        "notes": report.notes,
    }


class LocationService:
    """Writer, current-location query and timeline reader for tracked subjects.

    ``hub`` receives a ``location-update`` event after every committed
    sighting.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        hub: LiveUpdateHub,
        system_reporter_id: str = "rockeye-system",
        system_reporter_name: str = "Rockeye",
    ):
        self.session_factory = session_factory
        self.hub = hub
        self.system_reporter_id = system_reporter_id
        self.system_reporter_name = system_reporter_name

    # ------------------------------------------------------------------
    # Writer
    # ------------------------------------------------------------------

    async def report_location(
        self,
        subject_id: str,
        place_id: uuid.UUID,
        reporter_id: str,
        *,
        reporter_role: str = "user",
        sub_place_id: uuid.UUID | None = None,
        entry_time: datetime | None = None,
        notes: str | None = None,
    ) -> dict:
        """Close the subject's open report and open a new one at ``place_id``.

        Closing and opening happen in a single transaction. The partial
        unique index on open reports rejects a concurrent writer that
        would leave two reports open; that surfaces as ``ConflictError``.
        A sighting older than the open report is rejected.
        """
        if not subject_id:
            raise InvalidInputError("subjectId is required")
        entry_time = ensure_utc(entry_time) or datetime.now(timezone.utc)

        async with self.session_factory() as session:
            place = await session.get(Place, place_id)
            if place is None:
                raise NotFoundError("Place not found")

            sub_place = None
            if sub_place_id is not None:
                sub_place = await session.get(SubPlace, sub_place_id)
                if sub_place is None or sub_place.place_id != place.id:
                    raise NotFoundError("Sub-place not found")
                if not self._may_report_in(sub_place, reporter_id, reporter_role):
                    raise ForbiddenError(
                        "Only the owner can report sightings in this unit"
                    )

            result = await session.execute(
                select(LocationReport)
                .where(
                    LocationReport.subject_id == subject_id,
                    LocationReport.exit_time.is_(None),
                )
                .with_for_update()
            )
            previous_reports = result.scalars().all()
            if any(previous.entry_time > entry_time for previous in previous_reports):
                # Closing would leave the open report with exit_time < entry_time
                raise InvalidInputError(
                    "Sighting time is earlier than the current report's entry time"
                )
            for previous in previous_reports:
                previous.exit_time = entry_time
            # Close before opening so the open-report index never sees two rows
            await session.flush()

            report = LocationReport(
                subject_id=subject_id,
                reporter_id=reporter_id,
                place_id=place.id,
                sub_place_id=sub_place.id if sub_place else None,
                entry_time=entry_time,
                exit_time=None,
                notes=notes,
            )
            session.add(report)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.warning(
                    "location_report_conflict",
                    subject_id=subject_id,
                    place_id=str(place_id),
                )
                raise ConflictError(
                    "Another sighting was recorded at the same moment, please retry"
                )

            names = await self._reporter_names(session, [reporter_id])

        logger.info(
            "location_reported",
            subject_id=subject_id,
            report_id=str(report.id),
            place_id=str(place.id),
            sub_place_id=str(sub_place.id) if sub_place else None,
            reporter_id=reporter_id,
            closed=len(previous_reports),
        )

        event = LocationUpdateEvent(
            subject_id=subject_id,
            report_id=report.id,
            place_id=place.id,
            sub_place_id=sub_place.id if sub_place else None,
            entry_time=report.entry_time,
            place_name=place.name,
            sub_place_name=sub_place.name if sub_place else None,
        )
        await self.hub.broadcast(event.model_dump(mode="json", by_alias=True))

        return format_report(report, place, sub_place, names.get(reporter_id))

    def _may_report_in(self, sub_place: SubPlace, reporter_id: str, role: str) -> bool:
        if not sub_place.is_owner_restricted or role in PRIVILEGED_ROLES:
            return True
        return _parse_uuid(reporter_id) == sub_place.owner_id

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    async def get_current_location(self, subject_id: str) -> dict | None:
        """Return the subject's open report (latest entry first), or None."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(LocationReport, Place, SubPlace)
                .join(Place, LocationReport.place_id == Place.id)
                .outerjoin(SubPlace, LocationReport.sub_place_id == SubPlace.id)
                .where(
                    LocationReport.subject_id == subject_id,
                    LocationReport.exit_time.is_(None),
                )
                .order_by(LocationReport.entry_time.desc())
                .limit(1)
            )
            row = result.first()
            if row is None:
                return None
            report, place, sub_place = row
            names = await self._reporter_names(session, [report.reporter_id])

        return format_report(report, place, sub_place, names.get(report.reporter_id))

    async def get_timeline(
        self,
        subject_id: str,
        limit: int = 50,
        offset: int = 0,
        before: datetime | None = None,
    ) -> list[dict]:
        """Return up to ``limit`` reports, newest entry first."""
        if limit < 1 or limit > MAX_TIMELINE_LIMIT:
            raise InvalidInputError(f"limit must be between 1 and {MAX_TIMELINE_LIMIT}")
        if offset < 0:
            raise InvalidInputError("offset must not be negative")

        async with self.session_factory() as session:
            query = (
                select(LocationReport, Place, SubPlace)
                .join(Place, LocationReport.place_id == Place.id)
                .outerjoin(SubPlace, LocationReport.sub_place_id == SubPlace.id)
                .where(LocationReport.subject_id == subject_id)
            )
            if before is not None:
                query = query.where(LocationReport.entry_time < before)
            result = await session.execute(
                query.order_by(
                    LocationReport.entry_time.desc(), LocationReport.created_at.desc()
                )
                .offset(offset)
                .limit(limit)
            )
            rows = result.all()
            names = await self._reporter_names(
                session, [report.reporter_id for report, _, _ in rows]
            )

        return [
            format_report(report, place, sub_place, names.get(report.reporter_id))
            for report, place, sub_place in rows
        ]

    async def _reporter_names(
        self, session: AsyncSession, reporter_ids: list[str]
    ) -> dict[str, str]:
        """Resolve reporter ids to display names (system id included)."""
        names: dict[str, str] = {}
        user_ids = set()
        for reporter_id in reporter_ids:
            if reporter_id == self.system_reporter_id:
                names[reporter_id] = self.system_reporter_name
                continue
            uid = _parse_uuid(reporter_id)
            if uid is not None:
                user_ids.add(uid)

        if user_ids:
            result = await session.execute(
                select(User.id, User.name, User.email).where(User.id.in_(user_ids))
            )
            for uid, name, email in result.all():
                names[str(uid)] = name or email
        return names
