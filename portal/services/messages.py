"""Building chat: post, list and delete messages, live fan-out and read markers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from portal.errors import ForbiddenError, InvalidInputError, NotFoundError
from portal.services.live_updates import LiveUpdateHub
from portal.services.notifier import Notifier
from shared.models.chat_message import ChatMessage
from shared.models.message_read import MessageRead
from shared.schemas.messages import MessageEvent

logger = structlog.get_logger()

MAX_PAGE_SIZE = 100
NOTIFICATION_PREVIEW_CHARS = 100


def format_message(message: ChatMessage) -> dict:
    return {
        "id": str(message.id),
        "content": message.content,
        "userId": message.author_id,
        "userName": message.author_name,
        "replyToId": str(message.reply_to_id) if message.reply_to_id else None,
        "replyToContent": message.reply_to_content,
        "replyToUserName": message.reply_to_author_name,
        "createdAt": message.created_at.isoformat() if message.created_at else None,
        "updatedAt": message.updated_at.isoformat() if message.updated_at else None,
        "deletedAt": message.deleted_at.isoformat() if message.deleted_at else None,
    }


def _preview(content: str) -> str:
    if len(content) > NOTIFICATION_PREVIEW_CHARS:
        return content[:NOTIFICATION_PREVIEW_CHARS] + "..."
    return content


class MessageService:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        hub: LiveUpdateHub,
        notifier: Notifier | None = None,
        system_author_id: str = "rockeye-system",
        system_author_name: str = "Rockeye",
    ):
        self.session_factory = session_factory
        self.hub = hub
        self.notifier = notifier
        self.system_author_id = system_author_id
        self.system_author_name = system_author_name

    async def list_messages(
        self,
        limit: int = 50,
        offset: int = 0,
        before: datetime | None = None,
    ) -> list[dict]:
        """Non-deleted messages, newest first."""
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise InvalidInputError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise InvalidInputError("offset must not be negative")

        async with self.session_factory() as session:
            query = select(ChatMessage).where(ChatMessage.deleted_at.is_(None))
            if before is not None:
                query = query.where(ChatMessage.created_at < before)
            result = await session.execute(
                query.order_by(ChatMessage.created_at.desc()).offset(offset).limit(limit)
            )
            messages = result.scalars().all()
        return [format_message(m) for m in messages]

    async def post_message(
        self,
        author_id: str,
        author_name: str | None,
        content: str,
        reply_to_id: uuid.UUID | None = None,
        notify: bool = True,
    ) -> dict:
        async with self.session_factory() as session:
            reply_to = None
            if reply_to_id is not None:
                reply_to = await session.get(ChatMessage, reply_to_id)
                if reply_to is None or reply_to.deleted_at is not None:
                    raise NotFoundError("Message being replied to not found")

            message = ChatMessage(
                author_id=author_id,
                author_name=author_name,
                content=content,
                reply_to_id=reply_to.id if reply_to else None,
                reply_to_content=reply_to.content if reply_to else None,
                reply_to_author_name=reply_to.author_name if reply_to else None,
            )
            session.add(message)
            await session.commit()
            await session.refresh(message)

        logger.info("chat_message_posted", message_id=str(message.id), author_id=author_id)

        event = MessageEvent(
            type="new-message",
            message_id=message.id,
            content=message.content,
            user_id=message.author_id,
            user_name=message.author_name,
            created_at=message.created_at,
            reply_to_id=message.reply_to_id,
            reply_to_content=message.reply_to_content,
            reply_to_user_name=message.reply_to_author_name,
        )
        await self.hub.broadcast(event.model_dump(mode="json", by_alias=True))

        if notify and self.notifier is not None:
            await self.notifier.broadcast(
                title=author_name or "New message",
                body=_preview(content),
                category="message",
                exclude=[author_id],
                url="/messages",
                tag="chat-message",
                renotify=True,
            )

        return format_message(message)

    async def post_system_message(self, content: str) -> dict:
        """Post as the automated detector. Does not push-notify."""
        return await self.post_message(
            self.system_author_id, self.system_author_name, content, notify=False
        )

    async def delete_message(
        self, message_id: uuid.UUID, requester_id: str, is_admin: bool = False
    ) -> dict:
        """Soft-delete a message. Only its author or an admin may delete it."""
        async with self.session_factory() as session:
            message = await session.get(ChatMessage, message_id)
            if message is None or message.deleted_at is not None:
                raise NotFoundError("Message not found")
            if message.author_id != requester_id and not is_admin:
                raise ForbiddenError("You can only delete your own messages")

            message.deleted_at = datetime.now(timezone.utc)
            await session.commit()

        logger.info("chat_message_deleted", message_id=str(message_id), by=requester_id)

        event = MessageEvent(
            type="message-deleted",
            message_id=message.id,
            deleted_at=message.deleted_at,
        )
        await self.hub.broadcast(event.model_dump(mode="json", by_alias=True))
        return format_message(message)

    # ------------------------------------------------------------------
    # Read tracking
    # ------------------------------------------------------------------

    async def unread_count(self, user_id: uuid.UUID) -> dict:
        """Messages from others posted since the user last marked chat read."""
        async with self.session_factory() as session:
            marker = await session.get(MessageRead, user_id)
            query = select(func.count(ChatMessage.id)).where(
                ChatMessage.deleted_at.is_(None),
                ChatMessage.author_id != str(user_id),
            )
            if marker is not None:
                query = query.where(ChatMessage.created_at > marker.last_read_at)
            count = await session.scalar(query) or 0
        return {"hasUnread": count > 0, "count": count}

    async def mark_read(self, user_id: uuid.UUID, now: datetime | None = None) -> dict:
        now = now or datetime.now(timezone.utc)
        async with self.session_factory() as session:
            marker = await session.get(MessageRead, user_id)
            if marker is None:
                session.add(MessageRead(user_id=user_id, last_read_at=now))
            else:
                marker.last_read_at = now
            await session.commit()

        logger.debug("chat_marked_read", user_id=str(user_id))
        return {"success": True, "lastReadAt": now.isoformat()}
