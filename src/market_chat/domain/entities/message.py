from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    sender_id: int
    receiver_id: int
    content: str
    product_id: int | None
    replied_to_id: UUID | None
    read: bool
    created_at: datetime

    def other_party(self, user_id: int) -> int:
        """Return the participant that is not ``user_id``."""
        return self.receiver_id if self.sender_id == user_id else self.sender_id
