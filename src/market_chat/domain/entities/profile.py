from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class UserSummary:
    """Public profile fields shown next to a message."""

    id: int
    username: str
    fullname: str | None = None


@dataclass(frozen=True, slots=True)
class ProductSummary:
    id: int
    title: str
    image: str | None = None
    price: Decimal | None = None
