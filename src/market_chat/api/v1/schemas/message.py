from __future__ import annotations

from uuid import UUID

from pydantic import Field

from market_chat.api.v1.schemas.common import CamelModel


class MessageCreateRequest(CamelModel):
    # Missing fields are reported by the service as 422 with a readable detail.
    sender_id: int | None = None
    receiver_id: int | None = None
    content: str | None = None
    product_id: int | None = None
    replied_to: UUID | None = None


class ReplyRequest(CamelModel):
    message_id: UUID
    receiver_id: int | None = None
    content: str | None = None
    product_id: int | None = None


class UnreadCountResponse(CamelModel):
    sender_id: int
    receiver_id: int
    product_id: int | None = None
    count: int = Field(ge=0)
