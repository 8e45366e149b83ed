"""
Error taxonomy for the chat relay

Every error is scoped to the connection that triggered it; none is fatal to
the server process.
"""


class ChatRelayError(Exception):
    """Base class for relay errors"""


class InvalidJoin(ChatRelayError):
    """Username or room missing or blank on join"""


class PersistenceFailure(ChatRelayError):
    """Message or session store unavailable or errored"""


class UnknownConnection(ChatRelayError):
    """Event for a connection id that has no session"""
