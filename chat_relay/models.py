"""
Data models for the room chat relay
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .constants import CONTROL_CHAR_PATTERN, SYSTEM_USERNAME


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _strip_controls(value: str) -> str:
    if not value:
        return ""
    return re.sub(CONTROL_CHAR_PATTERN, '', value).strip()


class ConnectionState(str, Enum):
    """Lifecycle of a single transport connection"""
    UNJOINED = "unjoined"
    JOINED = "joined"
    LEFT = "left"


@dataclass
class Session:
    """Live binding of a connection id to a username and room"""
    connection_id: str
    username: str
    room: str
    joined_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.username = _strip_controls(self.username)
        self.room = _strip_controls(self.room)


@dataclass
class ChatMessage:
    """
    A chat message or system notice

    Persisted messages carry a store-assigned ``message_id``; notices never do.
    """
    username: str
    room: str
    text: str
    created_at: datetime = field(default_factory=utcnow)
    message_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape of ``message`` and ``messageHistory`` entries"""
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return {
            "username": self.username,
            "text": self.text,
            "createdAt": created_at.isoformat(),
        }


def notice(text: str, room: str = "") -> ChatMessage:
    """Synthesize a non-persisted system notice with a fresh timestamp"""
    return ChatMessage(username=SYSTEM_USERNAME, room=room, text=text)
