"""WebSocket transports for the realtime client."""
from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Protocol

import aiohttp

from market_chat.client.exceptions import TransportError

logger = logging.getLogger(__name__)


class WsTransport(Protocol):
    async def send_json(self, payload: dict[str, Any]) -> None: ...

    async def receive(self) -> dict[str, Any] | None:
        """Next JSON frame, or None once the connection is closed."""
        ...

    async def close(self) -> None: ...


TransportFactory = Callable[[], Awaitable[WsTransport]]

_CLOSED = (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR)


class AiohttpTransport:
    """One aiohttp WebSocket connection to ``/ws/chat``."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        ws: aiohttp.ClientWebSocketResponse,
        *,
        owns_session: bool = True,
    ) -> None:
        self._session = session
        self._ws = ws
        self._owns_session = owns_session

    @classmethod
    async def connect(
        cls,
        url: str,
        *,
        token: str,
        heartbeat: float = 20.0,
        session: aiohttp.ClientSession | None = None,
    ) -> AiohttpTransport:
        owns_session = session is None
        session = session or aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(url, params={"token": token}, heartbeat=heartbeat)
        except (aiohttp.ClientError, OSError) as exc:
            if owns_session:
                await session.close()
            raise TransportError(f"Cannot connect to {url}: {exc}") from exc
        logger.debug("Connected to %s", url)
        return cls(session, ws, owns_session=owns_session)

    async def send_json(self, payload: dict[str, Any]) -> None:
        try:
            await self._ws.send_json(payload)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            raise TransportError(str(exc)) from exc

    async def receive(self) -> dict[str, Any] | None:
        while True:
            msg = await self._ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    frame = json.loads(msg.data)
                except ValueError:
                    logger.warning("Dropping non-JSON frame")
                    continue
                if isinstance(frame, dict):
                    return frame
            elif msg.type in _CLOSED:
                return None

    async def close(self) -> None:
        await self._ws.close()
        if self._owns_session:
            await self._session.close()
