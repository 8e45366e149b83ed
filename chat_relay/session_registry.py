"""
Session registry and the room membership view derived from it
"""

import asyncio
from typing import Dict, List, Optional

from .constants import NOTICES
from .errors import InvalidJoin, PersistenceFailure, UnknownConnection
from .logger import get_logger, log_connection_event
from .models import Session
from .stores import InMemorySessionStore, SessionStore
from .validators import validate_join

logger = get_logger()


class SessionRegistry:
    """Single source of truth for who is online, and in which room"""

    def __init__(self, store: Optional[SessionStore] = None):
        # connection_id -> Session
        self._sessions: Dict[str, Session] = {}
        self._store = store if store is not None else InMemorySessionStore()
        self._lock = asyncio.Lock()

    def new_session(self, connection_id: str, username: str, room: str) -> Session:
        """
        Validate join fields and build an unregistered Session

        Raises:
            InvalidJoin: username or room blank or too long
        """
        is_valid, error_msg = validate_join(username, room)
        if not is_valid:
            raise InvalidJoin(error_msg)

        session = Session(connection_id=connection_id, username=username, room=room)
        if not session.username or not session.room:
            # Nothing left once control characters are stripped
            raise InvalidJoin(NOTICES["join_required"])
        return session

    async def admit(self, session: Session) -> Session:
        """
        Persist a session and make it visible in the registry

        The session is persisted before it becomes visible, so a store
        failure leaves no trace.

        Raises:
            PersistenceFailure: session store failed
        """
        await self._store.create(session)

        async with self._lock:
            self._sessions[session.connection_id] = session

        log_connection_event(session.connection_id, session.username, session.room, "join")
        return session

    async def open(self, connection_id: str, username: str, room: str) -> Session:
        """
        Bind a connection to a username and room

        Args:
            connection_id: Transport connection identifier
            username: Display name
            room: Room name

        Returns:
            The stored Session

        Raises:
            InvalidJoin: username or room blank or too long
            PersistenceFailure: session store failed
        """
        return await self.admit(self.new_session(connection_id, username, room))

    async def lookup(self, connection_id: str) -> Optional[Session]:
        async with self._lock:
            return self._sessions.get(connection_id)

    async def require(self, connection_id: str) -> Session:
        """Like ``lookup`` but raises UnknownConnection when there is no session"""
        session = await self.lookup(connection_id)
        if session is None:
            raise UnknownConnection(connection_id)
        return session

    async def close(self, connection_id: str) -> Optional[Session]:
        """
        Remove and return the session for a connection

        Store deletion is best effort; disconnects never fail.
        """
        async with self._lock:
            session = self._sessions.pop(connection_id, None)

        if session is None:
            return None

        try:
            await self._store.delete(connection_id)
        except PersistenceFailure as e:
            logger.error(f"Session store delete failed for {connection_id}: {e}")

        log_connection_event(connection_id, session.username, session.room, "leave")
        return session

    async def sessions_in(self, room: str) -> List[Session]:
        """Sessions in a room, oldest join first"""
        async with self._lock:
            sessions = [s for s in self._sessions.values() if s.room == room]
        return sorted(sessions, key=lambda s: s.joined_at)

    async def get_stats(self) -> Dict[str, int]:
        async with self._lock:
            rooms = {s.room for s in self._sessions.values()}
            return {
                "total_sessions": len(self._sessions),
                "active_rooms": len(rooms),
            }


class MembershipIndex:
    """Room -> occupants, recomputed from the registry on every request"""

    def __init__(self, registry: SessionRegistry):
        self._registry = registry

    async def occupants_of(self, room: str) -> List[str]:
        return [s.username for s in await self._registry.sessions_in(room)]

    async def room_users_payload(self, room: str) -> Dict[str, List[Dict[str, str]]]:
        """``roomUsers`` event body for a room"""
        occupants = await self.occupants_of(room)
        return {"users": [{"username": username} for username in occupants]}
