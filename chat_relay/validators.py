"""
Input validation for the chat relay wire protocol
"""

from typing import Any, Dict, Optional, Tuple

from .constants import (
    CLIENT_EVENTS,
    EVENT_JOIN_ROOM,
    MAX_MESSAGE_LENGTH,
    MAX_ROOM_LENGTH,
    MAX_USERNAME_LENGTH,
    NOTICES,
)
from .logger import log_security_event


def validate_join(username: Any, room: Any) -> Tuple[bool, str]:
    """
    Validate join parameters

    Args:
        username: Requested display name
        room: Requested room name

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(username, str) or not username.strip():
        log_security_event("invalid_username", {"username": str(username)})
        return False, NOTICES["join_required"]

    if not isinstance(room, str) or not room.strip():
        log_security_event("invalid_room", {"room": str(room)})
        return False, NOTICES["join_required"]

    if len(username.strip()) > MAX_USERNAME_LENGTH:
        log_security_event("invalid_username_length", {"length": len(username)})
        return False, NOTICES["join_too_long"]

    if len(room.strip()) > MAX_ROOM_LENGTH:
        log_security_event("invalid_room_length", {"length": len(room)})
        return False, NOTICES["join_too_long"]

    return True, ""


def normalize_text(raw_text: Any) -> str:
    """Trim message text; anything that is not a string becomes empty"""
    if not isinstance(raw_text, str):
        return ""
    return raw_text.strip()


def validate_message(text: str, username: str = "", room: str = "") -> Tuple[bool, str]:
    """
    Check the length of already-trimmed message text

    Empty text is reported valid-but-empty by the caller, not here.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if len(text) > MAX_MESSAGE_LENGTH:
        log_security_event("invalid_message_length", {
            "username": username,
            "room": room,
            "length": len(text)
        })
        return False, NOTICES["message_too_long"]

    return True, ""


def validate_envelope(payload: Any) -> Tuple[bool, str, Optional[str], Any]:
    """
    Validate an incoming ``{"type": ..., "data": ...}`` frame

    Args:
        payload: Decoded JSON frame

    Returns:
        Tuple of (is_valid, error_message, event, data)
    """
    if not isinstance(payload, dict):
        log_security_event("invalid_payload_type", {"payload_type": type(payload).__name__})
        return False, NOTICES["invalid_json"], None, None

    event = payload.get("type")
    if event not in CLIENT_EVENTS:
        log_security_event("unknown_event_type", {"event": event})
        return False, NOTICES["unknown_event"].format(event=event), None, None

    data = payload.get("data")

    if event == EVENT_JOIN_ROOM and not isinstance(data, dict):
        # Missing fields are handled as an invalid join, not a bad frame
        data = {}

    return True, "", event, data


def join_fields(data: Dict[str, Any]) -> Tuple[Any, Any]:
    """Pull username and room out of a joinRoom payload"""
    return data.get("username"), data.get("room")
