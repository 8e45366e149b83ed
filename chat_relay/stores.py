"""
Persistence interfaces consumed by the relay, with in-process implementations

The in-process stores are the default for a single-instance deployment;
``chat_relay.database`` provides SQL-backed ones with the same shape.
"""

import asyncio
import itertools
from typing import Dict, List, Optional, Protocol
from .models import ChatMessage, Session, utcnow


class MessageStore(Protocol):
    async def append(self, room: str, username: str, text: str) -> ChatMessage:
        """Persist a message and return it with its id and timestamp"""

    async def recent(self, room: str, limit: int) -> List[ChatMessage]:
        """Return up to ``limit`` messages for ``room``, newest first"""


class SessionStore(Protocol):
    async def create(self, session: Session) -> None:
        ...

    async def find(self, connection_id: str) -> Optional[Session]:
        ...

    async def delete(self, connection_id: str) -> Optional[Session]:
        ...


class InMemoryMessageStore:
    """Append-only per-room message log"""

    def __init__(self):
        # room -> messages in insertion order
        self._rooms: Dict[str, List[ChatMessage]] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def append(self, room: str, username: str, text: str) -> ChatMessage:
        async with self._lock:
            messages = self._rooms.setdefault(room, [])
            created_at = utcnow()
            # Clock steps backwards must not reorder a room's log
            if messages and created_at < messages[-1].created_at:
                created_at = messages[-1].created_at

            message = ChatMessage(
                username=username,
                room=room,
                text=text,
                created_at=created_at,
                message_id=str(next(self._ids)),
            )
            messages.append(message)
            return message

    async def recent(self, room: str, limit: int) -> List[ChatMessage]:
        async with self._lock:
            if limit <= 0:
                return []
            messages = self._rooms.get(room, [])
            return list(reversed(messages[-limit:]))

    async def count(self, room: str) -> int:
        async with self._lock:
            return len(self._rooms.get(room, []))


class InMemorySessionStore:
    """Session persistence that lives and dies with the process"""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    async def create(self, session: Session) -> None:
        self._sessions[session.connection_id] = session

    async def find(self, connection_id: str) -> Optional[Session]:
        return self._sessions.get(connection_id)

    async def delete(self, connection_id: str) -> Optional[Session]:
        return self._sessions.pop(connection_id, None)
