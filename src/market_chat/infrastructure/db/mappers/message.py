from __future__ import annotations

from datetime import datetime, timezone

from market_chat.domain.entities.message import Message
from market_chat.infrastructure.db.models.message import MessageModel


def _as_utc(ts: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        sender_id=model.sender_id,
        receiver_id=model.receiver_id,
        content=model.content,
        product_id=model.product_id,
        replied_to_id=model.replied_to_id,
        read=model.read,
        created_at=_as_utc(model.created_at),
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        id=entity.id,
        sender_id=entity.sender_id,
        receiver_id=entity.receiver_id,
        content=entity.content,
        product_id=entity.product_id,
        replied_to_id=entity.replied_to_id,
        read=entity.read,
        created_at=entity.created_at,
    )
