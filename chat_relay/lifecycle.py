"""
Connection lifecycle controller

Drives each connection through Unjoined -> Joined -> Left in response to
wire events, and owns the ordering of the side effects of every transition.
"""

from typing import Any, Dict, Optional

from .connection import BroadcastGroups, Connection
from .constants import (
    DEFAULT_HISTORY_LIMIT,
    EVENT_CHAT_MESSAGE,
    EVENT_JOIN_ROOM,
    EVENT_LEAVE_ROOM,
    EVENT_ROOM_USERS,
    EVENT_STOP_TYPING,
    EVENT_TYPING,
    NOTICES,
)
from .errors import InvalidJoin, PersistenceFailure, UnknownConnection
from .logger import get_logger, log_connection_event, log_security_event
from .message_handler import MessageHandler
from .models import ConnectionState, Session
from .session_registry import MembershipIndex, SessionRegistry
from .stores import InMemoryMessageStore, MessageStore, SessionStore
from .typing_tracker import TypingTracker
from .validators import join_fields

logger = get_logger()


class LifecycleController:
    """Orchestrates registry, typing tracker, and message pipeline"""

    def __init__(self, message_store: Optional[MessageStore] = None,
                 session_store: Optional[SessionStore] = None,
                 history_limit: int = DEFAULT_HISTORY_LIMIT):
        self.registry = SessionRegistry(session_store)
        self.membership = MembershipIndex(self.registry)
        self.groups = BroadcastGroups()
        self.typing = TypingTracker()
        self.messages = MessageHandler(
            self.registry,
            message_store if message_store is not None else InMemoryMessageStore(),
            self.groups,
            history_limit=history_limit,
        )

        self._handlers = {
            EVENT_JOIN_ROOM: self._on_join_room,
            EVENT_CHAT_MESSAGE: self._on_chat_message,
            EVENT_TYPING: self._on_typing,
            EVENT_STOP_TYPING: self._on_stop_typing,
            EVENT_LEAVE_ROOM: self._on_leave_room,
        }

    async def handle(self, connection: Connection, event: str, data: Any = None):
        """
        Dispatch one client event for a connection

        Events for the same connection are processed one at a time in the
        order they are handed in.
        """
        async with connection.lock:
            if connection.state is ConnectionState.LEFT:
                logger.debug(f"Ignoring {event} from {connection.connection_id}: already left")
                return

            handler = self._handlers.get(event)
            if handler is None:
                await self.messages.send_notice(
                    connection, NOTICES["unknown_event"].format(event=event)
                )
                return

            try:
                await handler(connection, data)
            except UnknownConnection as e:
                logger.debug(f"Ignoring {event}: {e}")

    async def disconnect(self, connection: Connection):
        """Transport closed; retire the connection id"""
        connection.mark_closed()
        async with connection.lock:
            if connection.state is ConnectionState.LEFT:
                return
            connection.state = ConnectionState.LEFT
            await self._depart(connection, "disconnect")

    # Transitions

    async def _on_join_room(self, connection: Connection, data: Dict[str, Any]):
        if connection.state is ConnectionState.JOINED:
            log_security_event("duplicate_join", {"connection_id": connection.connection_id})
            await self.messages.send_notice(connection, NOTICES["join_failed"])
            return

        username, room = join_fields(data or {})

        try:
            session = self.registry.new_session(connection.connection_id, username, room)
        except InvalidJoin as e:
            await self.messages.send_notice(connection, str(e))
            return

        # Every fallible step runs before the session is visible to the room
        try:
            history = await self.messages.history(session.room)
            await self.registry.admit(session)
        except PersistenceFailure as e:
            logger.error(f"joinRoom failed for {connection.connection_id}: {e}")
            log_connection_event(connection.connection_id, session.username, session.room,
                                 "join_failed")
            await self.messages.send_notice(connection, NOTICES["join_failed"])
            return

        # Only a fully persisted session gets into the broadcast group
        await self.groups.enroll(session.room, connection)
        connection.state = ConnectionState.JOINED

        await self.messages.send_history(connection, history)
        await self.messages.send_notice(
            connection, NOTICES["welcome"].format(room=session.room, username=session.username)
        )
        await self.messages.broadcast_notice(
            session.room, NOTICES["joined"].format(username=session.username), exclude=connection
        )
        await self.emit_room_users(session.room)

    async def _on_chat_message(self, connection: Connection, data: Any):
        session = await self.registry.require(connection.connection_id)

        # Indicators clear before the message appears
        await self._clear_typing(connection, session)
        await self.messages.send(connection, data)

    async def _on_typing(self, connection: Connection, data: Any):
        session = await self.registry.require(connection.connection_id)

        if self.typing.start_typing(session.room, session.username):
            await self.groups.broadcast(
                session.room, EVENT_TYPING, {"username": session.username}, exclude=connection
            )

    async def _on_stop_typing(self, connection: Connection, data: Any):
        session = await self.registry.require(connection.connection_id)

        await self._clear_typing(connection, session)

    async def _on_leave_room(self, connection: Connection, data: Any):
        if connection.state is not ConnectionState.JOINED:
            return
        connection.state = ConnectionState.LEFT
        await self._depart(connection, "leave")

    # Shared steps

    async def _clear_typing(self, connection: Connection, session: Session):
        if self.typing.stop_typing(session.room, session.username):
            await self.groups.broadcast(
                session.room, EVENT_STOP_TYPING, {"username": session.username}, exclude=connection
            )

    async def _depart(self, connection: Connection, reason: str):
        session = await self.registry.close(connection.connection_id)
        if session is None:
            logger.info(f"Disconnected (never joined): {connection.connection_id}")
            return

        await self._clear_typing(connection, session)
        await self.groups.withdraw(session.room, connection)
        await self.messages.broadcast_notice(
            session.room, NOTICES["left"].format(username=session.username)
        )
        await self.emit_room_users(session.room)
        logger.info(f"Departed ({reason}): {session.username} from {session.room}")

    async def emit_room_users(self, room: str) -> int:
        """Recompute a room's roster and send it to everyone in the room"""
        payload = await self.membership.room_users_payload(room)
        return await self.groups.broadcast(room, EVENT_ROOM_USERS, payload)

    async def get_stats(self) -> Dict[str, int]:
        stats = await self.registry.get_stats()
        stats["broadcast_groups"] = len(self.groups.rooms())
        stats["typing_flags"] = self.typing.total_flags()
        stats["history_limit"] = self.messages.history_limit
        return stats
