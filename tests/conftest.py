"""Shared fixtures for relay tests."""

import json
from typing import Any, Dict, List, Optional

import pytest

from chat_relay import Connection, LifecycleController
from chat_relay.errors import PersistenceFailure
from chat_relay.stores import InMemoryMessageStore, InMemorySessionStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeWebSocket:
    """Records every frame sent to it."""

    def __init__(self, log: Optional[List] = None, name: str = ""):
        self.frames: List[Dict[str, Any]] = []
        # Shared across sockets to check cross-connection ordering
        self.log = log
        self.name = name
        self.fail_sends = False

    async def send_text(self, text: str) -> None:
        if self.fail_sends:
            raise RuntimeError("socket closed")
        data = json.loads(text)
        self.frames.append(data)
        if self.log is not None:
            self.log.append((self.name, data))

    def events(self) -> List[str]:
        return [f["type"] for f in self.frames]

    def of(self, event: str) -> List[Any]:
        return [f.get("data") for f in self.frames if f["type"] == event]

    def texts(self) -> List[str]:
        return [f["data"]["text"] for f in self.frames if f["type"] == "message"]

    def clear(self) -> None:
        self.frames.clear()


class FailingMessageStore(InMemoryMessageStore):
    def __init__(self, fail_append: bool = False, fail_recent: bool = False):
        super().__init__()
        self.fail_append = fail_append
        self.fail_recent = fail_recent

    async def append(self, room, username, text):
        if self.fail_append:
            raise PersistenceFailure("store down")
        return await super().append(room, username, text)

    async def recent(self, room, limit):
        if self.fail_recent:
            raise PersistenceFailure("store down")
        return await super().recent(room, limit)


class FailingSessionStore(InMemorySessionStore):
    def __init__(self, fail_create: bool = False, fail_delete: bool = False):
        super().__init__()
        self.fail_create = fail_create
        self.fail_delete = fail_delete

    async def create(self, session):
        if self.fail_create:
            raise PersistenceFailure("store down")
        await super().create(session)

    async def delete(self, connection_id):
        if self.fail_delete:
            raise PersistenceFailure("store down")
        return await super().delete(connection_id)


@pytest.fixture
def message_store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def controller(message_store) -> LifecycleController:
    return LifecycleController(message_store=message_store, history_limit=50)


@pytest.fixture
def make_connection():
    counter = iter(range(1, 1000))

    def _make(log: Optional[List] = None, name: str = "") -> Connection:
        n = next(counter)
        return Connection(f"conn-{n}", FakeWebSocket(log=log, name=name or f"c{n}"))

    return _make


@pytest.fixture
def join(controller):
    async def _join(connection: Connection, username: str, room: str) -> None:
        await controller.handle(connection, "joinRoom", {"username": username, "room": room})

    return _join
