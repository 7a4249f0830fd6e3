from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class CreateMessageDTO:
    sender_id: int | None
    receiver_id: int | None
    content: str | None
    product_id: int | None = None
    replied_to_id: UUID | None = None
