"""HTTP helper for conversation history and read receipts."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)


@dataclass
class MarkReadReport:
    marked: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class HistoryClient:
    """Thin wrapper over ``/api/v1/messages`` for one authenticated user."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_url(cls, base_url: str, token: str, *, timeout: float = 10.0) -> HistoryClient:
        return cls(
            httpx.AsyncClient(
                base_url=base_url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=httpx.Timeout(timeout),
            )
        )

    async def __aenter__(self) -> HistoryClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_conversation(
        self,
        user_a: int,
        user_b: int,
        product_id: int | None = None,
    ) -> list[dict[str, Any]]:
        params = {"productId": product_id} if product_id is not None else None
        resp = await self._client.get(
            f"/api/v1/messages/conversation/{user_a}/{user_b}", params=params,
        )
        resp.raise_for_status()
        return resp.json()

    async def fetch_conversations(self, user_id: int) -> list[dict[str, Any]]:
        resp = await self._client.get(f"/api/v1/messages/conversations/{user_id}")
        resp.raise_for_status()
        return resp.json()

    async def mark_read(self, message_id: str) -> dict[str, Any]:
        resp = await self._client.patch(f"/api/v1/messages/{message_id}/read")
        resp.raise_for_status()
        return resp.json()

    async def mark_unread_read(
        self,
        viewer_id: int,
        other_user_id: int,
        product_id: int | None = None,
    ) -> MarkReadReport:
        """Open a thread: fetch it and mark everything the viewer has not read.

        Requests run concurrently; each is idempotent, so failures are
        collected into the report instead of raised.
        """
        messages = await self.fetch_conversation(viewer_id, other_user_id, product_id)
        unread = [
            m["id"]
            for m in messages
            if m.get("receiverId") == viewer_id
            and m.get("senderId") == other_user_id
            and not m.get("read")
        ]
        report = MarkReadReport()
        if not unread:
            return report

        results = await asyncio.gather(
            *(self.mark_read(message_id) for message_id in unread),
            return_exceptions=True,
        )
        for message_id, result in zip(unread, results):
            if isinstance(result, BaseException):
                logger.warning("Marking %s read failed: %s", message_id, result)
                report.failed[message_id] = str(result) or type(result).__name__
            else:
                report.marked.append(message_id)
        return report
