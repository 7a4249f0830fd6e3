"""Realtime gateway: per-connection state machine and live relay."""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Protocol

from pydantic import ValidationError as PydanticValidationError

from market_chat.application.dto.message import CreateMessageDTO
from market_chat.application.exceptions import AppError
from market_chat.application.ports.bus import RelayPublisher
from market_chat.application.ports.clock import Clock, SystemClock
from market_chat.application.ports.directory import Directory
from market_chat.application.uow import UnitOfWorkFactory
from market_chat.domain.value_objects.enums import ConnectionState, InboundEvent, OutboundEvent
from market_chat.infrastructure.dedup import RecentResults
from market_chat.infrastructure.ws.presence import PresenceRegistry
from market_chat.infrastructure.ws.protocol import (
    JoinData,
    MessageFailedOut,
    MessageRelay,
    SendMessageData,
    TypingData,
    TypingOut,
    WsInbound,
    WsOutbound,
)
from market_chat.services import message_service
from market_chat.services.summaries import SummaryResolver

logger = logging.getLogger(__name__)


class SocketLike(Protocol):
    async def accept(self) -> None: ...
    async def send_text(self, data: str) -> None: ...


class GatewayConnection:
    """One live socket and its position in the join lifecycle."""

    def __init__(
        self,
        socket: SocketLike,
        *,
        principal_id: int | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex[:12]
        self.socket = socket
        self.principal_id = principal_id
        self.user_id: int | None = None
        self.state = ConnectionState.CONNECTED

    @property
    def is_identified(self) -> bool:
        return self.state is ConnectionState.IDENTIFIED

    async def send(self, event: str, data: dict[str, Any]) -> bool:
        """Write one frame. Returns False if the socket is gone."""
        if self.state is ConnectionState.DISCONNECTED:
            return False
        raw = WsOutbound(type=event, data=data).model_dump_json()
        try:
            await self.socket.send_text(raw)
        except Exception:
            logger.debug("Send failed on connection %s", self.id, exc_info=True)
            return False
        return True

    def __repr__(self) -> str:
        return f"<GatewayConnection {self.id} user={self.user_id} state={self.state}>"


_Handler = Callable[[GatewayConnection, dict[str, Any]], Awaitable[None]]


class RealtimeGateway:
    """Relays messages and typing signals between connected users.

    Frames from one connection are handled one at a time, in order. Messages
    are persisted before any relay; the sender always gets
    ``messageConfirmed`` and the receiver gets ``messageReceived`` only while
    present. When a publisher is attached, relays for users not connected to
    this process are published for the other gateway processes.
    A repeated ``clientMsgId`` from the same user is confirmed again with the
    message stored the first time.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        presence: PresenceRegistry[GatewayConnection] | None = None,
        directory: Directory | None = None,
        publisher: RelayPublisher | None = None,
        clock: Clock | None = None,
        dedup_capacity: int = 1000,
        allow_self_messages: bool = False,
    ) -> None:
        self.instance_id = uuid.uuid4().hex
        self.presence: PresenceRegistry[GatewayConnection] = presence or PresenceRegistry()
        self._uow_factory = uow_factory
        self._directory = directory
        self._publisher = publisher
        self._clock = clock or SystemClock()
        self._confirmed: RecentResults[dict[str, Any]] = RecentResults(dedup_capacity)
        self._in_flight: dict[tuple[int, str], asyncio.Future[dict[str, Any] | None]] = {}
        self._allow_self_messages = allow_self_messages
        self._handlers: dict[str, _Handler] = {
            InboundEvent.JOIN: self._on_join,
            InboundEvent.SEND_MESSAGE: self._on_send_message,
            InboundEvent.TYPING: self._on_typing,
            InboundEvent.STOP_TYPING: self._on_stop_typing,
            InboundEvent.PING: self._on_ping,
        }

    def attach_publisher(self, publisher: RelayPublisher | None) -> None:
        self._publisher = publisher

    # -- connection lifecycle ------------------------------------------------

    async def open(self, socket: SocketLike, *, principal_id: int | None = None) -> GatewayConnection:
        await socket.accept()
        conn = GatewayConnection(socket, principal_id=principal_id)
        logger.debug("WS connected: %s", conn.id)
        return conn

    async def close(self, conn: GatewayConnection) -> None:
        if conn.state is ConnectionState.DISCONNECTED:
            return
        conn.state = ConnectionState.DISCONNECTED
        user_id = self.presence.leave(conn)
        logger.info(
            "WS disconnected: %s (user=%s, online=%d)",
            conn.id, user_id if user_id is not None else conn.user_id, len(self.presence),
        )

    async def dispatch(self, conn: GatewayConnection, raw: str) -> None:
        """Handle one raw text frame from ``conn``."""
        try:
            frame = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            await conn.send(OutboundEvent.ERROR, {"code": "invalid_payload"})
            return

        handler = self._handlers.get(frame.type)
        if handler is None:
            await conn.send(OutboundEvent.ERROR, {"code": "unknown_type", "type": frame.type})
            return
        if frame.type not in (InboundEvent.JOIN, InboundEvent.PING) and not conn.is_identified:
            await conn.send(OutboundEvent.ERROR, {"code": "not_joined", "type": frame.type})
            return
        await handler(conn, frame.data)

    # -- handlers ------------------------------------------------------------

    async def _on_ping(self, conn: GatewayConnection, data: dict[str, Any]) -> None:
        await conn.send(OutboundEvent.PONG, {})

    async def _on_join(self, conn: GatewayConnection, data: dict[str, Any]) -> None:
        try:
            payload = JoinData.model_validate(data)
        except PydanticValidationError as exc:
            await conn.send(OutboundEvent.ERROR, {"code": "invalid_data", "detail": str(exc)})
            return
        if conn.principal_id is not None and payload.user_id != conn.principal_id:
            await conn.send(OutboundEvent.ERROR, {"code": "identity_mismatch"})
            return

        if conn.user_id is not None and conn.user_id != payload.user_id:
            self.presence.leave(conn)
        conn.user_id = payload.user_id
        conn.state = ConnectionState.IDENTIFIED
        self.presence.join(payload.user_id, conn)
        logger.info(
            "User %s joined on connection %s (online=%d)",
            payload.user_id, conn.id, len(self.presence),
        )
        await conn.send(OutboundEvent.JOINED, {"userId": payload.user_id})

    async def _on_send_message(self, conn: GatewayConnection, data: dict[str, Any]) -> None:
        try:
            payload = SendMessageData.model_validate(data)
        except PydanticValidationError as exc:
            await self._fail(conn, f"Invalid message payload: {exc.error_count()} error(s)", None)
            return

        client_msg_id = payload.client_msg_id
        if payload.sender_id is not None and payload.sender_id != conn.user_id:
            await self._fail(conn, "senderId does not match the joined user", client_msg_id)
            return
        if not client_msg_id:
            await self._send_new(conn, payload)
            return

        # Keyed per user, so a resend on a fresh connection is still recognised.
        key = (conn.user_id, client_msg_id)
        previous = self._confirmed.get(key)
        if previous is None and key in self._in_flight:
            previous = await asyncio.shield(self._in_flight[key])
            if previous is None:
                await self._fail(conn, "Message could not be stored", client_msg_id)
                return
        if previous is not None:
            logger.info("Repeated send %s from %s, confirming again", client_msg_id, conn.user_id)
            await conn.send(OutboundEvent.MESSAGE_CONFIRMED, previous)
            return

        pending: asyncio.Future[dict[str, Any] | None] = asyncio.get_running_loop().create_future()
        self._in_flight[key] = pending
        relay: dict[str, Any] | None = None
        try:
            relay = await self._send_new(conn, payload)
        finally:
            del self._in_flight[key]
            if relay is not None:
                self._confirmed.put(key, relay)
            pending.set_result(relay)

    async def _send_new(
        self,
        conn: GatewayConnection,
        payload: SendMessageData,
    ) -> dict[str, Any] | None:
        """Persist, relay and confirm one message. Returns the confirmed payload."""
        client_msg_id = payload.client_msg_id
        dto = CreateMessageDTO(
            sender_id=conn.user_id,
            receiver_id=payload.receiver_id,
            content=payload.content,
            product_id=payload.product_id,
            replied_to_id=payload.replied_to,
        )
        try:
            async with self._uow_factory() as uow:
                message = await message_service.create_message(
                    dto,
                    uow,
                    clock=self._clock,
                    allow_self_messages=self._allow_self_messages,
                )
        except AppError as exc:
            logger.warning("sendMessage from %s rejected: %s", conn.user_id, exc.detail)
            await self._fail(conn, exc.detail, client_msg_id)
            return None
        except Exception:
            logger.exception("sendMessage from %s failed", conn.user_id)
            await self._fail(conn, "Message could not be stored", client_msg_id)
            return None

        summaries = SummaryResolver(self._directory)
        out = MessageRelay.from_message(
            message,
            sender=await summaries.user(message.sender_id),
            product=await summaries.product(message.product_id),
        )
        out.client_msg_id = client_msg_id
        relay = out.model_dump(mode="json", by_alias=True)

        delivered = await self.relay(message.receiver_id, OutboundEvent.MESSAGE_RECEIVED, relay)
        await conn.send(OutboundEvent.MESSAGE_CONFIRMED, relay)
        logger.info(
            "Message %s sent from %s to %s (live=%s)",
            message.id, message.sender_id, message.receiver_id, delivered,
        )
        return relay

    async def _on_typing(self, conn: GatewayConnection, data: dict[str, Any]) -> None:
        await self._relay_typing(conn, data, OutboundEvent.USER_TYPING)

    async def _on_stop_typing(self, conn: GatewayConnection, data: dict[str, Any]) -> None:
        await self._relay_typing(conn, data, OutboundEvent.USER_STOP_TYPING)

    async def _relay_typing(
        self,
        conn: GatewayConnection,
        data: dict[str, Any],
        event: OutboundEvent,
    ) -> None:
        try:
            payload = TypingData.model_validate(data)
        except PydanticValidationError as exc:
            await conn.send(OutboundEvent.ERROR, {"code": "invalid_data", "detail": str(exc)})
            return
        if payload.sender_id is not None and payload.sender_id != conn.user_id:
            await conn.send(OutboundEvent.ERROR, {"code": "identity_mismatch"})
            return
        out = TypingOut(user_id=conn.user_id, product_id=payload.product_id)  # type: ignore[arg-type]
        await self.relay(payload.receiver_id, event, out.model_dump(mode="json", by_alias=True))

    # -- relay ---------------------------------------------------------------

    async def relay(self, user_id: int, event: str, data: dict[str, Any]) -> bool:
        """Deliver to ``user_id`` here, or hand off to the fan-out bus."""
        if await self.deliver_local(user_id, event, data):
            return True
        if self._publisher is not None:
            try:
                await self._publisher.publish_relay(user_id, str(event), data)
            except Exception:
                logger.warning("Relay publish failed for user %s", user_id, exc_info=True)
        return False

    async def deliver_local(self, user_id: int, event: str, data: dict[str, Any]) -> bool:
        conn = self.presence.resolve(user_id)
        if conn is None:
            return False
        if await conn.send(event, data):
            return True
        await self.close(conn)
        return False

    # -- helpers -------------------------------------------------------------

    @staticmethod
    async def _fail(conn: GatewayConnection, error: str, client_msg_id: str | None) -> None:
        out = MessageFailedOut(error=error, client_msg_id=client_msg_id)
        await conn.send(OutboundEvent.MESSAGE_FAILED, out.model_dump(mode="json", by_alias=True))
