from __future__ import annotations

from dataclasses import dataclass

from market_chat.domain.entities.message import Message
from market_chat.domain.entities.profile import ProductSummary, UserSummary
from market_chat.domain.value_objects.conversation_key import ConversationKey


@dataclass(frozen=True, slots=True)
class Conversation:
    """A thread between the viewer and one counterpart, derived from messages.

    ``unread_count`` is ``None`` when it could not be computed.
    """

    key: ConversationKey
    other_user: UserSummary | None
    product: ProductSummary | None
    latest_message: Message
    unread_count: int | None

    @property
    def other_user_id(self) -> int:
        return self.key.other_user_id

    @property
    def product_id(self) -> int | None:
        return self.key.product_id
