"""Tests for the SQL-backed stores."""

import pytest
from sqlalchemy.exc import OperationalError

from chat_relay import Connection, LifecycleController, PersistenceFailure, Session
from chat_relay.database import (
    SQLMessageStore,
    SQLSessionStore,
    create_engine,
    create_session_factory,
    init_db,
)

from conftest import FakeWebSocket

pytestmark = pytest.mark.anyio


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}")
    await init_db(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


class TestSQLMessageStore:
    async def test_append_assigns_id_and_timestamp(self, session_factory) -> None:
        store = SQLMessageStore(session_factory)
        message = await store.append("X", "Ann", "hello")

        assert message.message_id is not None
        assert message.created_at.tzinfo is not None
        assert (message.username, message.room, message.text) == ("Ann", "X", "hello")

    async def test_recent_is_newest_first_and_bounded(self, session_factory) -> None:
        store = SQLMessageStore(session_factory)
        for i in range(5):
            await store.append("X", "Ann", f"m{i}")
        await store.append("Y", "Bob", "other room")

        recent = await store.recent("X", 3)

        assert [m.text for m in recent] == ["m4", "m3", "m2"]
        assert await store.recent("X", 0) == []
        assert await store.recent("nowhere", 10) == []

    async def test_query_errors_surface_as_persistence_failure(self, tmp_path) -> None:
        # Tables never created
        engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        store = SQLMessageStore(create_session_factory(engine))
        try:
            with pytest.raises(PersistenceFailure) as excinfo:
                await store.append("X", "Ann", "hello")
            assert isinstance(excinfo.value.__cause__, OperationalError)

            with pytest.raises(PersistenceFailure):
                await store.recent("X", 5)
        finally:
            await engine.dispose()


class TestSQLSessionStore:
    async def test_create_find_delete(self, session_factory) -> None:
        store = SQLSessionStore(session_factory)
        await store.create(Session(connection_id="c1", username="Ann", room="X"))

        found = await store.find("c1")
        assert (found.username, found.room) == ("Ann", "X")

        deleted = await store.delete("c1")
        assert deleted.connection_id == "c1"
        assert await store.find("c1") is None
        assert await store.delete("c1") is None

    async def test_create_replaces_same_connection(self, session_factory) -> None:
        store = SQLSessionStore(session_factory)
        await store.create(Session(connection_id="c1", username="Ann", room="X"))
        await store.create(Session(connection_id="c1", username="Ann", room="Y"))

        assert (await store.find("c1")).room == "Y"


async def test_controller_over_sql_stores(session_factory) -> None:
    controller = LifecycleController(
        message_store=SQLMessageStore(session_factory),
        session_store=SQLSessionStore(session_factory),
    )
    ann = Connection("ann", FakeWebSocket())
    bob = Connection("bob", FakeWebSocket())

    await controller.handle(ann, "joinRoom", {"username": "Ann", "room": "X"})
    await controller.handle(ann, "chat-message", "persisted")
    await controller.handle(bob, "joinRoom", {"username": "Bob", "room": "X"})

    history = bob.websocket.of("messageHistory")[0]
    assert [(m["username"], m["text"]) for m in history] == [("Ann", "persisted")]

    await controller.disconnect(ann)
    assert await SQLSessionStore(session_factory).find("ann") is None
