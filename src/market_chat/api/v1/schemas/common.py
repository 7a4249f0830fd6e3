"""camelCase wire models shared by the HTTP API and the realtime channel."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from market_chat.domain.entities.message import Message
from market_chat.domain.entities.profile import ProductSummary, UserSummary


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserSummaryOut(CamelModel):
    id: int
    username: str
    fullname: str | None = None

    @classmethod
    def from_summary(cls, summary: UserSummary | None) -> UserSummaryOut | None:
        if summary is None:
            return None
        return cls(id=summary.id, username=summary.username, fullname=summary.fullname)


class ProductSummaryOut(CamelModel):
    id: int
    title: str
    image: str | None = None
    price: float | None = None

    @classmethod
    def from_summary(cls, summary: ProductSummary | None) -> ProductSummaryOut | None:
        if summary is None:
            return None
        return cls(
            id=summary.id,
            title=summary.title,
            image=summary.image,
            price=float(summary.price) if summary.price is not None else None,
        )


class MessageOut(CamelModel):
    id: UUID
    sender_id: int
    receiver_id: int
    content: str
    product_id: int | None
    replied_to: UUID | None
    read: bool
    created_at: datetime
    sender: UserSummaryOut | None = None
    receiver: UserSummaryOut | None = None
    product: ProductSummaryOut | None = None

    @classmethod
    def from_message(
        cls,
        message: Message,
        *,
        sender: UserSummary | None = None,
        receiver: UserSummary | None = None,
        product: ProductSummary | None = None,
    ) -> MessageOut:
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            content=message.content,
            product_id=message.product_id,
            replied_to=message.replied_to_id,
            read=message.read,
            created_at=message.created_at,
            sender=UserSummaryOut.from_summary(sender),
            receiver=UserSummaryOut.from_summary(receiver),
            product=ProductSummaryOut.from_summary(product),
        )
