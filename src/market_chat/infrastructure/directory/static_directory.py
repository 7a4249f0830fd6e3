from __future__ import annotations

from dataclasses import dataclass, field

from market_chat.domain.entities.profile import ProductSummary, UserSummary


@dataclass
class StaticDirectory:
    """In-memory directory for development and for running without the marketplace API."""

    users: dict[int, UserSummary] = field(default_factory=dict)
    products: dict[int, ProductSummary] = field(default_factory=dict)

    def add_user(self, user: UserSummary) -> None:
        self.users[user.id] = user

    def add_product(self, product: ProductSummary) -> None:
        self.products[product.id] = product

    async def get_user(self, user_id: int) -> UserSummary | None:
        return self.users.get(user_id)

    async def get_product(self, product_id: int) -> ProductSummary | None:
        return self.products.get(product_id)
