"""
Logging configuration for the chat relay
"""

import logging
import sys
from typing import Optional

from .config import settings


class SanitizingFormatter(logging.Formatter):
    """Formatter that masks credentials that slip into log lines"""

    def format(self, record):
        message = super().format(record)
        # Database URLs may carry passwords
        sanitized = message.replace('password=', 'password=***')
        sanitized = sanitized.replace('token=', 'token=***')
        return sanitized


def get_logger(name: str = "chat_relay") -> logging.Logger:
    """
    Get a logger instance with the relay's formatting

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(logging.DEBUG)

        formatter = SanitizingFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)

        logger.addHandler(handler)
        logger.setLevel(settings.LOG_LEVEL)

        # Keep relay output out of the root logger
        logger.propagate = False

    return logger


def log_security_event(event_type: str, details: dict, logger: Optional[logging.Logger] = None):
    """
    Log rejected input with structured data

    Args:
        event_type: Type of security event
        details: Event details
        logger: Logger instance (optional)
    """
    if logger is None:
        logger = get_logger()

    logger.warning(f"SECURITY_EVENT: {event_type} | {details}")


def log_connection_event(connection_id: str, username: str, room: str, action: str):
    """
    Log join/leave transitions

    Args:
        connection_id: Transport connection identifier
        username: User identifier
        room: Chat room
        action: Action (join/leave/disconnect/join_failed)
    """
    logger = get_logger()
    logger.info(f"CONNECTION_EVENT: {action} | conn={connection_id} | user={username} | room={room}")


def log_message_event(message_id: str, username: str, room: str, action: str, details: str = ""):
    """
    Log message pipeline steps

    Args:
        message_id: Store-assigned message identifier
        username: Sender username
        room: Chat room
        action: Action (persist/broadcast/drop/error)
        details: Additional details
    """
    logger = get_logger()
    logger.info(f"MESSAGE_EVENT: {action} | id={message_id} | user={username} | room={room} | {details}")


def log_typing_event(username: str, room: str, action: str):
    """Log typing flag transitions"""
    logger = get_logger()
    logger.debug(f"TYPING_EVENT: {action} | user={username} | room={room}")


def log_websocket_event(event_type: str, connection_id: str, details: str = ""):
    """
    Log WebSocket protocol events

    Args:
        event_type: Type of WebSocket event
        connection_id: Connection identifier
        details: Additional details
    """
    logger = get_logger()
    logger.debug(f"WEBSOCKET_EVENT: {event_type} | conn={connection_id} | {details}")


def log_system_event(event_type: str, details: str, level: str = "info"):
    """
    Log system-level events

    Args:
        event_type: Type of system event
        details: Event details
        level: Log level (info/warning/error)
    """
    logger = get_logger()
    log_message = f"SYSTEM_EVENT: {event_type} | {details}"

    if level == "warning":
        logger.warning(log_message)
    elif level == "error":
        logger.error(log_message)
    else:
        logger.info(log_message)
