from __future__ import annotations

from dataclasses import dataclass

from market_chat.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class ConversationKey:
    """Identifies a thread from one viewer's side.

    ``product_id=None`` is the general thread with the counterpart, kept
    apart from every product-scoped thread when listing. Its unread count
    still spans every product.
    """

    other_user_id: int
    product_id: int | None = None

    @classmethod
    def for_viewer(cls, viewer_id: int, message: Message) -> ConversationKey:
        return cls(other_user_id=message.other_party(viewer_id), product_id=message.product_id)
