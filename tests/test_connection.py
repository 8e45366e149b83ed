"""Tests for Connection and BroadcastGroups."""

import pytest

from chat_relay import BroadcastGroups

pytestmark = pytest.mark.anyio


class TestBroadcastGroups:
    async def test_enroll_and_withdraw(self, make_connection) -> None:
        groups = BroadcastGroups()
        ann = make_connection()

        await groups.enroll("X", ann)
        assert groups.members("X") == [ann]
        assert list(groups._room_locks) == ["X"]

        await groups.withdraw("X", ann)
        assert groups.rooms() == []
        assert groups._room_locks == {}

    async def test_broadcast_to_empty_room_keeps_no_lock(self) -> None:
        groups = BroadcastGroups()

        for n in range(100):
            assert await groups.broadcast(f"room-{n}", "message", {"text": "hi"}) == 0

        assert groups._room_locks == {}
        assert groups._lock_users == {}

    async def test_withdraw_from_unknown_room_keeps_no_lock(self, make_connection) -> None:
        groups = BroadcastGroups()

        await groups.withdraw("nowhere", make_connection())

        assert groups._room_locks == {}

    async def test_broadcast_skips_excluded_and_closed(self, make_connection) -> None:
        groups = BroadcastGroups()
        ann, bob, cy = make_connection(), make_connection(), make_connection()
        for connection in (ann, bob, cy):
            await groups.enroll("X", connection)
        cy.mark_closed()

        delivered = await groups.broadcast("X", "typing", {"username": "Ann"}, exclude=ann)

        assert delivered == 1
        assert bob.websocket.of("typing") == [{"username": "Ann"}]
        assert ann.websocket.frames == []
        assert cy.websocket.frames == []
