"""Client session adapter for the realtime chat channel."""
from __future__ import annotations

import asyncio
import functools
import logging
import random
import uuid
from typing import Any, Callable, TypeVar
from uuid import UUID

from market_chat.client.exceptions import TransportError
from market_chat.client.transport import AiohttpTransport, TransportFactory, WsTransport
from market_chat.client.typing_debouncer import TypingDebouncer
from market_chat.domain.value_objects.enums import InboundEvent, OutboundEvent
from market_chat.infrastructure.dedup import RecentKeys

logger = logging.getLogger(__name__)

MessageListener = Callable[[dict[str, Any]], None]
TypingListener = Callable[[dict[str, Any], bool], None]
ConnectionListener = Callable[[bool], None]
ErrorListener = Callable[[dict[str, Any]], None]

L = TypeVar("L")


class RealtimeClient:
    """Keeps one user's realtime connection and fans frames out to listeners.

    Messages seen twice (the sender's confirm racing a receive, replays after
    a reconnect) reach message listeners once. After an unexpected close the
    client reconnects with exponential backoff and joins again.
    """

    def __init__(
        self,
        connect: TransportFactory,
        *,
        dedup_capacity: int = 200,
        typing_throttle: float = 2.0,
        typing_idle: float = 3.0,
        reconnect: bool = True,
        base_backoff: float = 1.0,
        max_backoff: float = 30.0,
        max_attempts: int | None = None,
    ) -> None:
        self._connect = connect
        self._reconnect = reconnect
        self._base_backoff = base_backoff
        self._max_backoff = max_backoff
        self._max_attempts = max_attempts

        self._transport: WsTransport | None = None
        self._runner: asyncio.Task[None] | None = None
        self._user_id: int | None = None
        self._connected = False
        self._closing = False

        self._seen = RecentKeys(dedup_capacity)
        self._typing = TypingDebouncer(
            self._emit_typing,
            self._emit_stop_typing,
            throttle=typing_throttle,
            idle=typing_idle,
        )

        self._message_listeners: list[MessageListener] = []
        self._typing_listeners: list[TypingListener] = []
        self._connection_listeners: list[ConnectionListener] = []
        self._error_listeners: list[ErrorListener] = []

    @classmethod
    def for_url(cls, url: str, token: str, **kwargs: Any) -> RealtimeClient:
        return cls(functools.partial(AiohttpTransport.connect, url, token=token), **kwargs)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def user_id(self) -> int | None:
        return self._user_id

    # -- listeners -----------------------------------------------------------

    def add_message_listener(self, listener: MessageListener) -> Callable[[], None]:
        return self._subscribe(self._message_listeners, listener)

    def add_typing_listener(self, listener: TypingListener) -> Callable[[], None]:
        return self._subscribe(self._typing_listeners, listener)

    def add_connection_listener(self, listener: ConnectionListener) -> Callable[[], None]:
        return self._subscribe(self._connection_listeners, listener)

    def add_error_listener(self, listener: ErrorListener) -> Callable[[], None]:
        return self._subscribe(self._error_listeners, listener)

    @staticmethod
    def _subscribe(listeners: list[L], listener: L) -> Callable[[], None]:
        listeners.append(listener)

        def unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    # -- lifecycle -----------------------------------------------------------

    async def connect(self, user_id: int) -> None:
        """Open the channel and join as ``user_id``. Raises TransportError."""
        if self._runner is not None:
            await self.disconnect()
        self._user_id = user_id
        self._closing = False
        await self._open()
        self._runner = asyncio.create_task(self._run(), name=f"chat-client-{user_id}")

    async def disconnect(self) -> None:
        self._closing = True
        self._typing.cancel_all()
        runner, self._runner = self._runner, None
        if runner is not None:
            runner.cancel()
            try:
                await runner
            except asyncio.CancelledError:
                pass
        await self._drop_transport()

    async def _open(self) -> None:
        transport = await self._connect()
        try:
            await transport.send_json(
                {"type": InboundEvent.JOIN.value, "data": {"userId": self._user_id}}
            )
        except Exception:
            await transport.close()
            raise
        self._transport = transport
        self._set_connected(True)
        logger.info("Realtime channel open for user %s", self._user_id)

    async def _run(self) -> None:
        while True:
            transport = self._transport
            if transport is None:
                return
            while True:
                frame = await transport.receive()
                if frame is None:
                    break
                self._dispatch(frame)

            if self._closing:
                return
            logger.warning("Realtime channel closed unexpectedly for user %s", self._user_id)
            await self._drop_transport()
            if not self._reconnect or not await self._reconnect_with_backoff():
                return

    async def _reconnect_with_backoff(self) -> bool:
        attempt = 0
        while not self._closing:
            if self._max_attempts is not None and attempt >= self._max_attempts:
                logger.error("Giving up reconnecting after %d attempts", attempt)
                return False
            await asyncio.sleep(self._backoff(attempt))
            attempt += 1
            try:
                await self._open()
            except TransportError as exc:
                logger.info("Reconnect attempt %d failed: %s", attempt, exc)
                continue
            return True
        return False

    def _backoff(self, attempt: int) -> float:
        delay = min(self._base_backoff * (2 ** attempt), self._max_backoff)
        return max(0.0, delay + delay * 0.25 * (2 * random.random() - 1))

    async def _drop_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                await transport.close()
            except Exception:
                logger.debug("Error closing transport", exc_info=True)
        self._typing.cancel_all()
        self._set_connected(False)

    def _set_connected(self, value: bool) -> None:
        if self._connected == value:
            return
        self._connected = value
        self._notify(self._connection_listeners, value)

    # -- inbound -------------------------------------------------------------

    def _dispatch(self, frame: Any) -> None:
        if not isinstance(frame, dict) or not isinstance(frame.get("data") or {}, dict):
            logger.warning("Ignoring malformed frame: %r", frame)
            return
        event = frame.get("type")
        data = frame.get("data") or {}

        if event in (OutboundEvent.MESSAGE_RECEIVED, OutboundEvent.MESSAGE_CONFIRMED):
            message_id = data.get("id")
            if message_id is not None and self._seen.check_and_add(message_id):
                logger.debug("Duplicate message %s ignored", message_id)
                return
            self._notify(self._message_listeners, data)
        elif event == OutboundEvent.USER_TYPING:
            self._notify(self._typing_listeners, data, True)
        elif event == OutboundEvent.USER_STOP_TYPING:
            self._notify(self._typing_listeners, data, False)
        elif event in (OutboundEvent.MESSAGE_FAILED, OutboundEvent.ERROR):
            logger.warning("Server reported %s: %s", event, data)
            self._notify(self._error_listeners, data)
        elif event in (OutboundEvent.JOINED, OutboundEvent.PONG):
            logger.debug("%s %s", event, data)
        else:
            logger.debug("Unhandled frame type %r", event)

    def _notify(self, listeners: list[Callable[..., None]], *args: Any) -> None:
        for listener in list(listeners):
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener %r failed", listener)

    # -- outbound ------------------------------------------------------------

    async def send_message(
        self,
        receiver_id: int,
        content: str,
        *,
        product_id: int | None = None,
        replied_to: UUID | str | None = None,
        client_msg_id: str | None = None,
    ) -> bool:
        """Send a message. Returns False when not connected."""
        data: dict[str, Any] = {
            "senderId": self._user_id,
            "receiverId": receiver_id,
            "content": content,
            "productId": product_id,
            "clientMsgId": client_msg_id or uuid.uuid4().hex,
        }
        if replied_to is not None:
            data["repliedTo"] = str(replied_to)
        sent = await self._send(InboundEvent.SEND_MESSAGE, data)
        if sent:
            await self._typing.stop(receiver_id, product_id)
        return sent

    async def send_typing(self, receiver_id: int, product_id: int | None = None) -> None:
        if self._connected:
            await self._typing.keystroke(receiver_id, product_id)

    async def send_stop_typing(self, receiver_id: int, product_id: int | None = None) -> None:
        await self._typing.stop(receiver_id, product_id)

    async def _emit_typing(self, receiver_id: int, product_id: int | None) -> None:
        await self._send(InboundEvent.TYPING, self._typing_data(receiver_id, product_id))

    async def _emit_stop_typing(self, receiver_id: int, product_id: int | None) -> None:
        await self._send(InboundEvent.STOP_TYPING, self._typing_data(receiver_id, product_id))

    def _typing_data(self, receiver_id: int, product_id: int | None) -> dict[str, Any]:
        return {"senderId": self._user_id, "receiverId": receiver_id, "productId": product_id}

    async def _send(self, event: InboundEvent, data: dict[str, Any]) -> bool:
        transport = self._transport
        if not self._connected or transport is None:
            return False
        try:
            await transport.send_json({"type": event.value, "data": data})
        except TransportError as exc:
            logger.warning("Could not send %s: %s", event.value, exc)
            return False
        return True
