"""
Room Chat Relay
Room-based chat coordination: sessions, membership, typing indicators, and message fan-out
"""

from .models import ChatMessage, ConnectionState, Session, notice
from .errors import ChatRelayError, InvalidJoin, PersistenceFailure, UnknownConnection
from .validators import validate_join, validate_message, validate_envelope, normalize_text
from .stores import InMemoryMessageStore, InMemorySessionStore, MessageStore, SessionStore
from .session_registry import SessionRegistry, MembershipIndex
from .connection import Connection, BroadcastGroups
from .typing_tracker import TypingTracker
from .message_handler import MessageHandler
from .lifecycle import LifecycleController
from .config import Settings, settings
from .constants import *
from .logger import (
    get_logger,
    log_security_event,
    log_connection_event,
    log_message_event,
    log_typing_event,
    log_websocket_event,
    log_system_event
)

__all__ = [
    'ChatMessage',
    'ConnectionState',
    'Session',
    'notice',
    'ChatRelayError',
    'InvalidJoin',
    'PersistenceFailure',
    'UnknownConnection',
    'validate_join',
    'validate_message',
    'validate_envelope',
    'normalize_text',
    'InMemoryMessageStore',
    'InMemorySessionStore',
    'MessageStore',
    'SessionStore',
    'SessionRegistry',
    'MembershipIndex',
    'Connection',
    'BroadcastGroups',
    'TypingTracker',
    'MessageHandler',
    'LifecycleController',
    'Settings',
    'settings',
    'get_logger',
    'log_security_event',
    'log_connection_event',
    'log_message_event',
    'log_typing_event',
    'log_websocket_event',
    'log_system_event'
]
