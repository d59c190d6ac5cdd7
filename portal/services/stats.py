"""Per-resident activity summary for the profile page."""

from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from portal.errors import NotFoundError
from portal.services.locations import format_report
from shared.models.chat_message import ChatMessage
from shared.models.location_report import LocationReport
from shared.models.place import Place, SubPlace
from shared.models.user import User

RECENT_REPORTS = 5
TOP_LOCATIONS = 5


class UserStatsService:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def user_stats(self, user_id: uuid.UUID) -> dict:
        """Report and message counts, latest sightings and most-reported places."""
        reporter_id = str(user_id)

        async with self.session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")

            total_reports = await session.scalar(
                select(func.count(LocationReport.id)).where(
                    LocationReport.reporter_id == reporter_id
                )
            )

            result = await session.execute(
                select(LocationReport, Place, SubPlace)
                .join(Place, LocationReport.place_id == Place.id)
                .outerjoin(SubPlace, LocationReport.sub_place_id == SubPlace.id)
                .where(LocationReport.reporter_id == reporter_id)
                .order_by(LocationReport.created_at.desc(), LocationReport.entry_time.desc())
                .limit(RECENT_REPORTS)
            )
            recent = result.all()

            report_count = func.count(LocationReport.id).label("report_count")
            result = await session.execute(
                select(Place.name, report_count)
                .join(Place, LocationReport.place_id == Place.id)
                .where(LocationReport.reporter_id == reporter_id)
                .group_by(Place.id, Place.name)
                .order_by(report_count.desc(), Place.name)
                .limit(TOP_LOCATIONS)
            )
            top_locations = result.all()

            total_messages = await session.scalar(
                select(func.count(ChatMessage.id)).where(
                    ChatMessage.author_id == reporter_id,
                    ChatMessage.deleted_at.is_(None),
                )
            )

        display_name = user.name or user.email
        return {
            "totalReports": total_reports or 0,
            "recentReports": [
                format_report(report, place, sub_place, display_name)
                for report, place, sub_place in recent
            ],
            "topLocations": [
                {"location": name, "count": count} for name, count in top_locations
            ],
            "totalMessages": total_messages or 0,
            "memberSince": user.created_at.isoformat() if user.created_at else None,
        }
