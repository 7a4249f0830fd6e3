"""User/product lookups against the marketplace REST API."""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from market_chat.domain.entities.profile import ProductSummary, UserSummary

logger = logging.getLogger(__name__)


def _price(raw: Any) -> Decimal | None:
    if raw is None:
        return None
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        return None


class HttpMarketplaceDirectory:
    """Implements application.ports.directory.Directory over HTTP.

    ``GET /users/{id}`` and ``GET /products/{id}``; 404 means unknown.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_url(cls, base_url: str, *, timeout: float = 5.0) -> HttpMarketplaceDirectory:
        return cls(httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(timeout)))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_user(self, user_id: int) -> UserSummary | None:
        data = await self._get_json(f"/users/{user_id}")
        if data is None:
            return None
        return UserSummary(
            id=user_id,
            username=data.get("username", ""),
            fullname=data.get("fullname"),
        )

    async def get_product(self, product_id: int) -> ProductSummary | None:
        data = await self._get_json(f"/products/{product_id}")
        if data is None:
            return None
        return ProductSummary(
            id=product_id,
            title=data.get("title", ""),
            image=data.get("image"),
            price=_price(data.get("price")),
        )

    async def _get_json(self, path: str) -> dict[str, Any] | None:
        resp = await self._client.get(path)
        if resp.status_code == 404:
            logger.debug("Directory miss: %s", path)
            return None
        resp.raise_for_status()
        return resp.json()
