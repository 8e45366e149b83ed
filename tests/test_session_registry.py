"""Tests for SessionRegistry and MembershipIndex."""

import pytest

from chat_relay import InvalidJoin, MembershipIndex, PersistenceFailure, SessionRegistry, UnknownConnection
from chat_relay.stores import InMemorySessionStore

from conftest import FailingSessionStore

pytestmark = pytest.mark.anyio


class TestSessionRegistry:
    async def test_open_then_lookup_returns_full_session(self) -> None:
        registry = SessionRegistry()
        session = await registry.open("c1", "Ann", "X")

        found = await registry.lookup("c1")
        assert found is session
        assert (found.username, found.room) == ("Ann", "X")
        assert found.joined_at is not None

    @pytest.mark.parametrize(
        ("username", "room"),
        [("", "X"), ("Ann", ""), ("   ", "X"), ("Ann", "\t\n"), (None, "X"), ("Ann", 7), ("\x01\x02", "X")],
    )
    async def test_open_rejects_blank_fields(self, username, room) -> None:
        registry = SessionRegistry()
        with pytest.raises(InvalidJoin):
            await registry.open("c1", username, room)
        assert await registry.lookup("c1") is None

    async def test_open_is_insert_or_replace_per_connection(self) -> None:
        registry = SessionRegistry()
        await registry.open("c1", "Ann", "X")
        await registry.open("c1", "Ann", "Y")

        assert (await registry.lookup("c1")).room == "Y"
        assert (await registry.get_stats())["total_sessions"] == 1

    async def test_store_failure_leaves_nothing_registered(self) -> None:
        registry = SessionRegistry(FailingSessionStore(fail_create=True))
        with pytest.raises(PersistenceFailure):
            await registry.open("c1", "Ann", "X")
        assert await registry.lookup("c1") is None

    async def test_open_persists_to_store(self) -> None:
        store = InMemorySessionStore()
        registry = SessionRegistry(store)
        await registry.open("c1", "Ann", "X")
        assert (await store.find("c1")).username == "Ann"

        await registry.close("c1")
        assert await store.find("c1") is None

    async def test_close_returns_removed_session(self) -> None:
        registry = SessionRegistry()
        await registry.open("c1", "Ann", "X")

        closed = await registry.close("c1")
        assert closed.username == "Ann"
        assert await registry.lookup("c1") is None

    async def test_close_unknown_connection_returns_none(self) -> None:
        registry = SessionRegistry()
        assert await registry.close("nobody") is None

    async def test_close_tolerates_store_delete_failure(self) -> None:
        registry = SessionRegistry(FailingSessionStore(fail_delete=True))
        await registry.open("c1", "Ann", "X")

        closed = await registry.close("c1")
        assert closed is not None
        assert await registry.lookup("c1") is None

    async def test_require_raises_for_unknown_connection(self) -> None:
        registry = SessionRegistry()
        with pytest.raises(UnknownConnection):
            await registry.require("ghost")

    async def test_stats_count_sessions_and_rooms(self) -> None:
        registry = SessionRegistry()
        await registry.open("c1", "Ann", "X")
        await registry.open("c2", "Bob", "X")
        await registry.open("c3", "Cy", "Y")

        assert await registry.get_stats() == {"total_sessions": 3, "active_rooms": 2}


class TestMembershipIndex:
    async def test_occupants_in_join_order(self) -> None:
        registry = SessionRegistry()
        index = MembershipIndex(registry)
        await registry.open("c1", "Ann", "X")
        await registry.open("c2", "Bob", "X")
        await registry.open("c3", "Cy", "Y")

        assert await index.occupants_of("X") == ["Ann", "Bob"]
        assert await index.occupants_of("Y") == ["Cy"]
        assert await index.occupants_of("Z") == []

    async def test_duplicate_usernames_are_listed_per_session(self) -> None:
        registry = SessionRegistry()
        index = MembershipIndex(registry)
        await registry.open("c1", "Ann", "X")
        await registry.open("c2", "Ann", "X")

        assert await index.occupants_of("X") == ["Ann", "Ann"]

    async def test_recomputed_after_close(self) -> None:
        registry = SessionRegistry()
        index = MembershipIndex(registry)
        await registry.open("c1", "Ann", "X")
        await registry.open("c2", "Bob", "X")
        await registry.close("c1")

        assert await index.room_users_payload("X") == {"users": [{"username": "Bob"}]}
