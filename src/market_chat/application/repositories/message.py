from __future__ import annotations

from typing import Protocol
from uuid import UUID

from market_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def list_conversation(
        self,
        user_a: int,
        user_b: int,
        *,
        product_id: int | None = None,
    ) -> list[Message]:
        """Both directions between two users, oldest first."""
        ...

    async def list_inbox(self, user_id: int) -> list[Message]: ...

    async def list_sent(self, user_id: int) -> list[Message]: ...

    async def list_for_user(self, user_id: int) -> list[Message]:
        """Messages sent or received by ``user_id``, newest first."""
        ...

    async def count_unread(
        self,
        sender_id: int,
        receiver_id: int,
        *,
        product_id: int | None = None,
    ) -> int:
        """Unread sender→receiver messages; ``product_id=None`` means any product."""
        ...


class MessageWriter(Protocol):
    async def create(self, message: Message) -> Message: ...

    async def mark_read(self, message_id: UUID) -> Message | None:
        """Set read=True. Return the updated message, or None if unknown."""
        ...
