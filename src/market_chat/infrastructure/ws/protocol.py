"""Realtime channel frames: ``{"type": <event>, "data": {...}}``."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel

from market_chat.api.v1.schemas.common import CamelModel, MessageOut


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # join | sendMessage | typing | stopTyping | ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # messageReceived | messageConfirmed | messageFailed | userTyping | ...
    data: dict[str, Any] = {}


class JoinData(CamelModel):
    user_id: int


class SendMessageData(CamelModel):
    # Required fields are enforced by the message store so failures surface as messageFailed.
    sender_id: int | None = None
    receiver_id: int | None = None
    content: str | None = None
    product_id: int | None = None
    replied_to: UUID | None = None
    client_msg_id: str | None = None


class TypingData(CamelModel):
    sender_id: int | None = None
    receiver_id: int
    product_id: int | None = None


class TypingOut(CamelModel):
    user_id: int
    product_id: int | None = None


class MessageRelay(MessageOut):
    """Persisted message as relayed live, echoing the sender's client id."""

    client_msg_id: str | None = None


class MessageFailedOut(CamelModel):
    error: str
    client_msg_id: str | None = None
