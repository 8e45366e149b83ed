"""
Message pipeline: validate, persist, and fan out chat messages
"""

from typing import Any, List, Optional

from .connection import BroadcastGroups, Connection
from .constants import (
    DEFAULT_HISTORY_LIMIT,
    EVENT_MESSAGE,
    EVENT_MESSAGE_HISTORY,
    NOTICES,
)
from .errors import PersistenceFailure
from .logger import get_logger, log_message_event
from .models import ChatMessage, notice
from .session_registry import SessionRegistry
from .stores import MessageStore
from .validators import normalize_text, validate_message

logger = get_logger()


class MessageHandler:
    """Persists chat messages and delivers messages and notices to rooms"""

    def __init__(self, registry: SessionRegistry, store: MessageStore,
                 groups: BroadcastGroups, history_limit: int = DEFAULT_HISTORY_LIMIT):
        self._registry = registry
        self._store = store
        self._groups = groups
        self.history_limit = history_limit

    async def send(self, connection: Connection, raw_text: Any) -> Optional[ChatMessage]:
        """
        Persist a chat message and broadcast it to the sender's room

        The sender is included in the broadcast; it is their only
        confirmation that the message landed.

        Args:
            connection: Originating connection
            raw_text: Text as received on the wire

        Returns:
            The persisted message, or None if it was dropped or rejected
        """
        session = await self._registry.lookup(connection.connection_id)
        if session is None:
            # Sender already gone
            log_message_event("-", "-", "-", "drop", f"no session for {connection.connection_id}")
            return None

        text = normalize_text(raw_text)
        if not text:
            log_message_event("-", session.username, session.room, "drop", "empty after trim")
            return None

        is_valid, error_msg = validate_message(text, session.username, session.room)
        if not is_valid:
            await self.send_notice(connection, error_msg)
            return None

        try:
            message = await self._store.append(session.room, session.username, text)
        except PersistenceFailure as e:
            log_message_event("-", session.username, session.room, "error", str(e))
            await self.send_notice(connection, NOTICES["send_failed"])
            return None

        log_message_event(message.message_id, session.username, session.room, "persist",
                          f"length={len(text)}")

        recipients = await self._groups.broadcast(session.room, EVENT_MESSAGE, message.to_dict())
        log_message_event(message.message_id, session.username, session.room, "broadcast",
                          f"recipients={recipients}")
        return message

    async def history(self, room: str) -> List[ChatMessage]:
        """
        Most recent messages for a room, oldest first

        Raises:
            PersistenceFailure: message store failed
        """
        newest_first = await self._store.recent(room, self.history_limit)
        return list(reversed(newest_first))

    async def send_history(self, connection: Connection, messages: List[ChatMessage]) -> bool:
        return await connection.send(
            EVENT_MESSAGE_HISTORY, [message.to_dict() for message in messages]
        )

    async def send_notice(self, connection: Connection, text: str) -> bool:
        """Unicast a system notice"""
        return await connection.send(EVENT_MESSAGE, notice(text).to_dict())

    async def broadcast_notice(self, room: str, text: str,
                               exclude: Optional[Connection] = None) -> int:
        """Broadcast a system notice to a room"""
        return await self._groups.broadcast(
            room, EVENT_MESSAGE, notice(text, room).to_dict(), exclude=exclude
        )
