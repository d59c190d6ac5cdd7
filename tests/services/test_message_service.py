"""Tests for the building chat service."""

from __future__ import annotations

import json
import uuid
from datetime import datetime

import pytest

from portal.errors import ForbiddenError, InvalidInputError, NotFoundError
from shared.models.message_read import MessageRead
from tests.conftest import at


class TestPostMessage:
    @pytest.mark.asyncio
    async def test_returns_formatted_message(self, message_service):
        message = await message_service.post_message("user-1", "Alice", "Rocky is on the roof!")

        assert message["content"] == "Rocky is on the roof!"
        assert message["userId"] == "user-1"
        assert message["userName"] == "Alice"
        assert message["replyToId"] is None
        assert message["deletedAt"] is None
        assert message["createdAt"] is not None

    @pytest.mark.asyncio
    async def test_reply_copies_parent(self, message_service):
        parent = await message_service.post_message("user-1", "Alice", "Anyone seen Rocky?")

        reply = await message_service.post_message(
            "user-2", "Bob", "Garden, 5 minutes ago", reply_to_id=uuid.UUID(parent["id"])
        )

        assert reply["replyToId"] == parent["id"]
        assert reply["replyToContent"] == "Anyone seen Rocky?"
        assert reply["replyToUserName"] == "Alice"

    @pytest.mark.asyncio
    async def test_reply_to_missing_message(self, message_service):
        with pytest.raises(NotFoundError):
            await message_service.post_message("user-1", "Alice", "hi", reply_to_id=uuid.uuid4())

    @pytest.mark.asyncio
    async def test_broadcasts_new_message(self, message_service, message_hub):
        received = []
        message_hub.subscribe(received.append)

        message = await message_service.post_message("user-1", "Alice", "hello")

        assert len(received) == 1
        assert received[0]["type"] == "new-message"
        assert received[0]["messageId"] == message["id"]
        assert received[0]["userName"] == "Alice"

    @pytest.mark.asyncio
    async def test_notifies_everyone_but_the_author(self, message_service, mock_redis, make_user):
        author = await make_user(name="Alice")
        neighbour = await make_user(name="Bob")

        await message_service.post_message(str(author.id), "Alice", "x" * 150)

        published = [json.loads(call.args[1]) for call in mock_redis.publish.await_args_list]
        assert [n["user_id"] for n in published] == [str(neighbour.id)]
        assert published[0]["category"] == "message"
        assert published[0]["title"] == "Alice"
        assert published[0]["body"] == "x" * 100 + "..."

    @pytest.mark.asyncio
    async def test_system_message_does_not_notify(self, message_service, mock_redis, make_user):
        await make_user()

        message = await message_service.post_system_message("Rocky detected")

        assert message["userId"] == "rockeye-system"
        assert message["userName"] == "Rockeye"
        mock_redis.publish.assert_not_awaited()


class TestListMessages:
    @pytest.mark.asyncio
    async def test_newest_first_without_deleted(self, message_service):
        first = await message_service.post_message("user-1", "Alice", "one")
        second = await message_service.post_message("user-1", "Alice", "two")
        third = await message_service.post_message("user-1", "Alice", "three")
        await message_service.delete_message(uuid.UUID(second["id"]), "user-1")

        messages = await message_service.list_messages()

        assert [m["id"] for m in messages] == [third["id"], first["id"]]

    @pytest.mark.asyncio
    async def test_limit(self, message_service):
        for i in range(3):
            await message_service.post_message("user-1", "Alice", f"message {i}")

        assert len(await message_service.list_messages(limit=2)) == 2

    @pytest.mark.asyncio
    async def test_limit_out_of_range(self, message_service):
        with pytest.raises(InvalidInputError):
            await message_service.list_messages(limit=101)


class TestDeleteMessage:
    @pytest.mark.asyncio
    async def test_author_can_delete(self, message_service, message_hub):
        message = await message_service.post_message("user-1", "Alice", "oops")
        received = []
        message_hub.subscribe(received.append)

        deleted = await message_service.delete_message(uuid.UUID(message["id"]), "user-1")

        assert deleted["deletedAt"] is not None
        assert received[0]["type"] == "message-deleted"
        assert received[0]["messageId"] == message["id"]

    @pytest.mark.asyncio
    async def test_other_user_cannot_delete(self, message_service):
        message = await message_service.post_message("user-1", "Alice", "mine")

        with pytest.raises(ForbiddenError):
            await message_service.delete_message(uuid.UUID(message["id"]), "user-2")

    @pytest.mark.asyncio
    async def test_admin_can_delete(self, message_service):
        message = await message_service.post_message("user-1", "Alice", "spam")

        deleted = await message_service.delete_message(
            uuid.UUID(message["id"]), "admin-1", is_admin=True
        )

        assert deleted["deletedAt"] is not None

    @pytest.mark.asyncio
    async def test_deleting_twice_is_not_found(self, message_service):
        message = await message_service.post_message("user-1", "Alice", "bye")
        await message_service.delete_message(uuid.UUID(message["id"]), "user-1")

        with pytest.raises(NotFoundError):
            await message_service.delete_message(uuid.UUID(message["id"]), "user-1")


class TestReadTracking:
    @pytest.mark.asyncio
    async def test_everything_from_others_is_unread_at_first(self, message_service, make_user):
        alice = await make_user(name="Alice")
        await message_service.post_message("user-2", "Bob", "Rocky is in the lobby")
        await message_service.post_message("user-3", "Cleo", "Now the roof")
        await message_service.post_message(str(alice.id), "Alice", "Thanks!")

        assert await message_service.unread_count(alice.id) == {"hasUnread": True, "count": 2}

    @pytest.mark.asyncio
    async def test_mark_read_clears_count(self, message_service, make_user):
        alice = await make_user(name="Alice")
        await message_service.post_message("user-2", "Bob", "Rocky is in the lobby")

        result = await message_service.mark_read(alice.id)

        assert result["success"] is True
        assert await message_service.unread_count(alice.id) == {"hasUnread": False, "count": 0}

    @pytest.mark.asyncio
    async def test_only_messages_after_marker_are_unread(self, message_service, make_user):
        alice = await make_user(name="Alice")
        first = await message_service.post_message("user-2", "Bob", "Rocky is in the lobby")
        await message_service.mark_read(alice.id, now=datetime.fromisoformat(first["createdAt"]))

        await message_service.post_message("user-2", "Bob", "Now the garden")

        assert await message_service.unread_count(alice.id) == {"hasUnread": True, "count": 1}

    @pytest.mark.asyncio
    async def test_marking_again_moves_marker(self, message_service, session_factory, make_user):
        alice = await make_user(name="Alice")

        await message_service.mark_read(alice.id, now=at(0))
        await message_service.mark_read(alice.id, now=at(5))

        async with session_factory() as session:
            marker = await session.get(MessageRead, alice.id)
        assert marker.last_read_at == at(5)

    @pytest.mark.asyncio
    async def test_deleted_messages_are_not_unread(self, message_service, make_user):
        alice = await make_user(name="Alice")
        message = await message_service.post_message("user-2", "Bob", "oops")
        await message_service.delete_message(uuid.UUID(message["id"]), "user-2")

        assert await message_service.unread_count(alice.id) == {"hasUnread": False, "count": 0}
