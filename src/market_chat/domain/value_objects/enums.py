from __future__ import annotations

from enum import StrEnum


class InboundEvent(StrEnum):
    """Client → Server frame types."""

    JOIN = "join"
    SEND_MESSAGE = "sendMessage"
    TYPING = "typing"
    STOP_TYPING = "stopTyping"
    PING = "ping"


class OutboundEvent(StrEnum):
    """Server → Client frame types."""

    MESSAGE_RECEIVED = "messageReceived"
    MESSAGE_CONFIRMED = "messageConfirmed"
    MESSAGE_FAILED = "messageFailed"
    USER_TYPING = "userTyping"
    USER_STOP_TYPING = "userStopTyping"
    JOINED = "joined"
    ERROR = "error"
    PONG = "pong"


class ConnectionState(StrEnum):
    CONNECTED = "connected"
    IDENTIFIED = "identified"
    DISCONNECTED = "disconnected"
