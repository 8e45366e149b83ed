"""
Protocol constants for the room chat relay
"""

# Message and join limits
MAX_MESSAGE_LENGTH = 5000
MAX_USERNAME_LENGTH = 32
MAX_ROOM_LENGTH = 50
DEFAULT_HISTORY_LIMIT = 50

# Reserved author for synthesized notices
SYSTEM_USERNAME = "Server"

# Control characters stripped from usernames and room names
CONTROL_CHAR_PATTERN = r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]'

# Client -> server events
EVENT_JOIN_ROOM = "joinRoom"
EVENT_CHAT_MESSAGE = "chat-message"
EVENT_TYPING = "typing"
EVENT_STOP_TYPING = "stopTyping"
EVENT_LEAVE_ROOM = "leaveRoom"

CLIENT_EVENTS = (
    EVENT_JOIN_ROOM,
    EVENT_CHAT_MESSAGE,
    EVENT_TYPING,
    EVENT_STOP_TYPING,
    EVENT_LEAVE_ROOM,
)

# Server -> client events
EVENT_MESSAGE_HISTORY = "messageHistory"
EVENT_MESSAGE = "message"
EVENT_ROOM_USERS = "roomUsers"

# Notice texts
NOTICES = {
    "welcome": "Welcome to {room}, {username}!",
    "joined": "{username} has joined the chat.",
    "left": "{username} has left the chat.",
    "join_required": "Username and room are required.",
    "join_too_long": "Username must be at most 32 characters and room at most 50.",
    "join_failed": "Failed to join room. Please try again.",
    "send_failed": "Failed to send message.",
    "message_too_long": "Message must be at most 5000 characters.",
    "invalid_json": "Invalid JSON format",
    "unknown_event": "Unknown event type: {event}",
}
