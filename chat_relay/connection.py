"""
Per-connection context and room broadcast groups
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from .logger import get_logger, log_websocket_event
from .models import ConnectionState

logger = get_logger()


class Connection:
    """
    Owned context for one transport connection

    Handlers receive this object explicitly; nothing about the socket is
    kept in module state.
    """

    def __init__(self, connection_id: str, websocket: Any):
        self.connection_id = connection_id
        self.websocket = websocket
        self.state = ConnectionState.UNJOINED
        self.closed = False
        # Serializes this connection's own transitions
        self.lock = asyncio.Lock()

    def mark_closed(self):
        self.closed = True

    async def send(self, event: str, data: Any = None) -> bool:
        """
        Send one ``{"type", "data"}`` frame

        Returns:
            True if the frame was handed to the socket
        """
        if self.closed:
            log_websocket_event("send_skipped", self.connection_id, f"event={event} (closed)")
            return False

        frame = {"type": event}
        if data is not None:
            frame["data"] = data

        try:
            await self.websocket.send_text(json.dumps(frame))
            return True
        except Exception as e:
            # The peer may vanish between the closed check and the write
            logger.error(f"Failed to send {event} to {self.connection_id}: {e}")
            return False

    def __repr__(self):
        return f"Connection({self.connection_id!r}, state={self.state.value})"


class BroadcastGroups:
    """Room -> live connections, with one fan-out at a time per room"""

    def __init__(self):
        # room -> {connection_id: Connection}
        self._groups: Dict[str, Dict[str, Connection]] = {}
        self._room_locks: Dict[str, asyncio.Lock] = {}
        # room -> tasks holding or waiting on that room's lock
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _room_lock(self, room: str):
        """
        Hold a room's fan-out lock

        The lock is dropped once nobody uses it and the room has no group,
        so room names chosen by clients do not accumulate.
        """
        lock = self._room_locks.get(room)
        if lock is None:
            lock = self._room_locks[room] = asyncio.Lock()
        self._lock_users[room] = self._lock_users.get(room, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[room] -= 1
            if not self._lock_users[room]:
                del self._lock_users[room]
                if room not in self._groups:
                    del self._room_locks[room]

    async def enroll(self, room: str, connection: Connection):
        async with self._room_lock(room):
            self._groups.setdefault(room, {})[connection.connection_id] = connection

    async def withdraw(self, room: str, connection: Connection):
        async with self._room_lock(room):
            members = self._groups.get(room)
            if members is None:
                return
            members.pop(connection.connection_id, None)
            if not members:
                del self._groups[room]
                logger.info(f"Broadcast group deleted: {room} (empty)")

    def members(self, room: str) -> List[Connection]:
        return list(self._groups.get(room, {}).values())

    def rooms(self) -> List[str]:
        return list(self._groups.keys())

    async def broadcast(self, room: str, event: str, data: Any = None,
                        exclude: Optional[Connection] = None) -> int:
        """
        Deliver an event to every connection in a room

        Args:
            room: Target room
            event: Wire event name
            data: Event payload
            exclude: Connection to skip (the originator, for typing events)

        Returns:
            Number of successful recipients
        """
        async with self._room_lock(room):
            recipients = [
                c for c in self._groups.get(room, {}).values()
                if exclude is None or c.connection_id != exclude.connection_id
            ]
            delivered = 0
            for connection in recipients:
                if await connection.send(event, data):
                    delivered += 1

        logger.debug(f"Broadcast {event} to {room}: {delivered}/{len(recipients)} delivered")
        return delivered
