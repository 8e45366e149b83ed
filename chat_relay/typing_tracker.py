"""
Typing indicator state per (room, username)

The tracker only records the last signal each client sent. Idle timeouts
are decided client side; nothing here expires a flag on its own.
"""

from typing import Dict, Set

from .logger import log_typing_event


class TypingTracker:

    def __init__(self):
        # room -> usernames currently composing
        self._typing: Dict[str, Set[str]] = {}

    def start_typing(self, room: str, username: str) -> bool:
        """Flag a user as composing; False if they already were"""
        composing = self._typing.setdefault(room, set())
        if username in composing:
            return False
        composing.add(username)
        log_typing_event(username, room, "start")
        return True

    def stop_typing(self, room: str, username: str) -> bool:
        """Clear a user's flag; False if there was none"""
        composing = self._typing.get(room)
        if not composing or username not in composing:
            return False
        composing.discard(username)
        if not composing:
            del self._typing[room]
        log_typing_event(username, room, "stop")
        return True

    def is_typing(self, room: str, username: str) -> bool:
        return username in self._typing.get(room, ())

    def typing_in(self, room: str) -> Set[str]:
        return set(self._typing.get(room, ()))

    def total_flags(self) -> int:
        return sum(len(users) for users in self._typing.values())
