"""Best-effort denormalisation of user and product summaries."""
from __future__ import annotations

import logging

from market_chat.application.ports.directory import Directory
from market_chat.domain.entities.profile import ProductSummary, UserSummary

logger = logging.getLogger(__name__)


class SummaryResolver:
    """Looks summaries up once per instance; lookup failures yield None."""

    def __init__(self, directory: Directory | None) -> None:
        self._directory = directory
        self._users: dict[int, UserSummary | None] = {}
        self._products: dict[int, ProductSummary | None] = {}

    async def user(self, user_id: int) -> UserSummary | None:
        if self._directory is None:
            return None
        if user_id not in self._users:
            try:
                self._users[user_id] = await self._directory.get_user(user_id)
            except Exception:
                logger.warning("User lookup failed for %s", user_id, exc_info=True)
                return None
        return self._users[user_id]

    async def product(self, product_id: int | None) -> ProductSummary | None:
        if self._directory is None or product_id is None:
            return None
        if product_id not in self._products:
            try:
                self._products[product_id] = await self._directory.get_product(product_id)
            except Exception:
                logger.warning("Product lookup failed for %s", product_id, exc_info=True)
                return None
        return self._products[product_id]
