"""SQLAlchemy models."""

from shared.models.base import Base
from shared.models.chat_message import ChatMessage
from shared.models.location_report import LocationReport
from shared.models.message_read import MessageRead
from shared.models.notification_preference import NotificationPreference
from shared.models.place import Place, SubPlace
from shared.models.subject import TrackedSubject
from shared.models.user import User

__all__ = [
    "Base",
    "ChatMessage",
    "LocationReport",
    "MessageRead",
    "NotificationPreference",
    "Place",
    "SubPlace",
    "TrackedSubject",
    "User",
]
