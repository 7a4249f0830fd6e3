from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from market_chat.api.deps import GatewayDep, get_verifier
from market_chat.application.dto.principal import Principal
from market_chat.config import settings
from market_chat.domain.value_objects.enums import OutboundEvent
from market_chat.infrastructure.ws.gateway import GatewayConnection

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


async def _authenticate(token: str | None) -> Principal | None:
    if not token:
        return None
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    gateway: GatewayDep,
    token: str | None = Query(default=None),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    # Admins may join as any user.
    principal_id = None if principal.is_admin else principal.subject_id
    conn = await gateway.open(websocket, principal_id=principal_id)

    heartbeat_task = asyncio.create_task(
        _heartbeat(conn), name=f"ws-heartbeat-{conn.id}",
    )
    try:
        while True:
            raw = await websocket.receive_text()
            await gateway.dispatch(conn, raw)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error on connection %s", conn.id)
    finally:
        heartbeat_task.cancel()
        await gateway.close(conn)


async def _heartbeat(conn: GatewayConnection) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            if not await conn.send(OutboundEvent.PONG, {}):
                return
    except asyncio.CancelledError:
        pass
