from __future__ import annotations

from market_chat.api.v1.schemas.common import (
    CamelModel,
    MessageOut,
    ProductSummaryOut,
    UserSummaryOut,
)
from market_chat.domain.entities.conversation import Conversation


class ConversationResponse(CamelModel):
    other_user_id: int
    product_id: int | None
    other_user: UserSummaryOut | None
    product: ProductSummaryOut | None
    latest_message: MessageOut
    unread_count: int | None

    @classmethod
    def from_conversation(cls, conv: Conversation) -> ConversationResponse:
        return cls(
            other_user_id=conv.other_user_id,
            product_id=conv.product_id,
            other_user=UserSummaryOut.from_summary(conv.other_user),
            product=ProductSummaryOut.from_summary(conv.product),
            latest_message=MessageOut.from_message(conv.latest_message),
            unread_count=conv.unread_count,
        )
