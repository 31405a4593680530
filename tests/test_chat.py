"""Tests for chat rooms, messages, moderation and read receipts."""

import pytest

from apsar_api.models import ChatRoomType, ModerationStatus
from apsar_api.services import (
    ChatService,
    ForbiddenError,
    InvalidStateError,
    ValidationFailedError,
)
from apsar_api.services.chat import DELETED_TEXT, HIDDEN_TEXT


@pytest.fixture
def chat(session) -> ChatService:
    return ChatService(session)


@pytest.fixture
async def room(chat, member_a, member_b):
    return await chat.create_room(
        member_a, ChatRoomType.GROUP, name="Rope team", member_ids=[member_b.id]
    )


# =============================================================================
# TEST: ROOMS
# =============================================================================


class TestRooms:
    async def test_direct_room_needs_exactly_one_other(self, chat, member_a, member_b, member_c):
        with pytest.raises(ValidationFailedError):
            await chat.create_room(member_a, ChatRoomType.DIRECT, member_ids=[member_b.id, member_c.id])

        room = await chat.create_room(member_a, ChatRoomType.DIRECT, member_ids=[member_b.id])
        assert {m.user_id for m in room.members} == {member_a.id, member_b.id}

    async def test_unit_room_gathers_unit(self, chat, officer, member_a, member_b, member_c):
        room = await chat.create_room(officer, ChatRoomType.UNIT, unit_name="Team A")

        member_ids = {m.user_id for m in room.members}
        assert {officer.id, member_a.id, member_b.id} <= member_ids
        assert member_c.id not in member_ids

    async def test_general_room_is_officer_only(self, chat, member_a):
        with pytest.raises(ForbiddenError):
            await chat.create_room(member_a, ChatRoomType.GENERAL, name="All hands")

    async def test_non_member_is_forbidden(self, chat, room, member_c):
        with pytest.raises(ForbiddenError):
            await chat.get_room(room.id, member_c)
        assert await chat.list_rooms(member_c) == []


# =============================================================================
# TEST: MESSAGES
# =============================================================================


class TestMessages:
    async def test_send_and_list_oldest_first(self, chat, room, member_a, member_b):
        await chat.send_message(room.id, member_a, "first")
        await chat.send_message(room.id, member_b, "second")

        views = await chat.list_messages(room.id, member_a)
        assert [v.text for v in views] == ["first", "second"]

    async def test_edit_keeps_history(self, chat, room, member_a):
        view = await chat.send_message(room.id, member_a, "on my way")
        edited = await chat.edit_message(view.message.id, member_a, "on my way, 15 min")

        assert edited.message.is_edited is True
        assert edited.message.edit_history[0]["message"] == "on my way"

    async def test_only_author_edits(self, chat, room, member_a, member_b):
        view = await chat.send_message(room.id, member_a, "hello")
        with pytest.raises(ForbiddenError):
            await chat.edit_message(view.message.id, member_b, "hijacked")

    async def test_deleted_message_is_masked_for_members(self, chat, room, member_a, member_b, officer):
        view = await chat.send_message(room.id, member_a, "oops")
        await chat.delete_message(view.message.id, member_a)

        member_view = (await chat.list_messages(room.id, member_b))[0]
        assert member_view.text == DELETED_TEXT
        # Moderators still see the original
        assert chat.display_text(view.message, can_moderate=True) == "oops"

        with pytest.raises(InvalidStateError):
            await chat.edit_message(view.message.id, member_a, "again")

    async def test_other_member_cannot_delete(self, chat, room, member_a, member_b):
        view = await chat.send_message(room.id, member_a, "mine")
        with pytest.raises(ForbiddenError):
            await chat.delete_message(view.message.id, member_b)


# =============================================================================
# TEST: MODERATION
# =============================================================================


class TestModeration:
    async def test_flag_then_hide(self, chat, room, member_a, member_b, officer):
        view = await chat.send_message(room.id, member_a, "rude")
        flagged = await chat.flag_message(view.message.id, member_b, reason="language")
        assert flagged.is_flagged is True
        assert flagged.moderation_status == ModerationStatus.PENDING

        hidden = await chat.moderate_message(view.message.id, officer, "hide")
        assert hidden.moderation_status == ModerationStatus.HIDDEN
        assert chat.display_text(hidden, can_moderate=False) == HIDDEN_TEXT

    async def test_member_cannot_moderate(self, chat, room, member_a, member_b):
        view = await chat.send_message(room.id, member_a, "text")
        with pytest.raises(ForbiddenError):
            await chat.moderate_message(view.message.id, member_b, "remove")


# =============================================================================
# TEST: READ RECEIPTS
# =============================================================================


class TestReadReceipts:
    async def test_mark_read_is_idempotent(self, chat, room, member_a, member_b):
        view = await chat.send_message(room.id, member_a, "ping")

        first = await chat.mark_read(room.id, view.message.id, member_b)
        again = await chat.mark_read(room.id, view.message.id, member_b)

        assert first.id == again.id
        receipts = await chat.list_receipts(room.id, view.message.id, member_a)
        assert [r.user_id for r in receipts] == [member_b.id]

    async def test_mark_room_read_skips_own_and_read(self, chat, room, member_a, member_b):
        await chat.send_message(room.id, member_a, "one")
        await chat.send_message(room.id, member_a, "two")
        await chat.send_message(room.id, member_b, "mine")

        assert await chat.mark_room_read(room.id, member_b) == 2
        assert await chat.mark_room_read(room.id, member_b) == 0

        views = await chat.list_messages(room.id, member_a)
        assert views[0].read_by == [member_b.id]
