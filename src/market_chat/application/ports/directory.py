from __future__ import annotations

from typing import Protocol

from market_chat.domain.entities.profile import ProductSummary, UserSummary


class UserDirectory(Protocol):
    """Marketplace lookup of public user profiles."""

    async def get_user(self, user_id: int) -> UserSummary | None: ...


class ProductCatalog(Protocol):
    async def get_product(self, product_id: int) -> ProductSummary | None: ...


class Directory(UserDirectory, ProductCatalog, Protocol):
    pass
