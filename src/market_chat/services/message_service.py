from __future__ import annotations

import logging
import uuid

from market_chat.application.dto.message import CreateMessageDTO
from market_chat.application.dto.principal import Principal
from market_chat.application.exceptions import NotFoundError, ValidationError
from market_chat.application.policies.permissions import assert_can_mark_read
from market_chat.application.ports.clock import Clock, SystemClock
from market_chat.application.uow import UnitOfWork
from market_chat.domain.entities.message import Message

logger = logging.getLogger(__name__)

_system_clock = SystemClock()


def _validate(dto: CreateMessageDTO, *, allow_self_messages: bool) -> None:
    missing = [
        name
        for name, value in (("sender_id", dto.sender_id), ("receiver_id", dto.receiver_id))
        if value is None
    ]
    if dto.content is None or not dto.content.strip():
        missing.append("content")
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")
    if not allow_self_messages and dto.sender_id == dto.receiver_id:
        raise ValidationError("Sender and receiver must be different users")


async def create_message(
    dto: CreateMessageDTO,
    uow: UnitOfWork,
    *,
    clock: Clock = _system_clock,
    allow_self_messages: bool = False,
) -> Message:
    """Persist a new unread message.

    A reply without its own product reference inherits the product of the
    message it answers.
    """
    _validate(dto, allow_self_messages=allow_self_messages)

    product_id = dto.product_id
    if dto.replied_to_id is not None:
        original = await uow.messages.get_by_id(dto.replied_to_id)
        if original is None:
            raise NotFoundError("Replied-to message not found")
        if product_id is None:
            product_id = original.product_id

    msg = Message(
        id=uuid.uuid4(),
        sender_id=dto.sender_id,  # type: ignore[arg-type]
        receiver_id=dto.receiver_id,  # type: ignore[arg-type]
        content=dto.content,  # type: ignore[arg-type]
        product_id=product_id,
        replied_to_id=dto.replied_to_id,
        read=False,
        created_at=clock.now(),
    )
    msg = await uow.messages_w.create(msg)
    await uow.commit()
    logger.debug("Message %s stored (%s -> %s)", msg.id, msg.sender_id, msg.receiver_id)
    return msg


async def reply_to_message(
    principal: Principal,
    replied_to_id: uuid.UUID,
    receiver_id: int | None,
    content: str | None,
    product_id: int | None,
    uow: UnitOfWork,
    *,
    clock: Clock = _system_clock,
    allow_self_messages: bool = False,
) -> Message:
    """Reply as the authenticated user.

    Without an explicit receiver the reply goes to the other party of the
    original message.
    """
    if receiver_id is None:
        original = await uow.messages.get_by_id(replied_to_id)
        if original is None:
            raise NotFoundError("Replied-to message not found")
        receiver_id = original.other_party(principal.subject_id)

    dto = CreateMessageDTO(
        sender_id=principal.subject_id,
        receiver_id=receiver_id,
        content=content,
        product_id=product_id,
        replied_to_id=replied_to_id,
    )
    return await create_message(
        dto, uow, clock=clock, allow_self_messages=allow_self_messages,
    )


async def list_conversation(
    user_a: int,
    user_b: int,
    product_id: int | None,
    uow: UnitOfWork,
) -> list[Message]:
    return await uow.messages.list_conversation(user_a, user_b, product_id=product_id)


async def list_inbox(user_id: int, uow: UnitOfWork) -> list[Message]:
    return await uow.messages.list_inbox(user_id)


async def list_sent(user_id: int, uow: UnitOfWork) -> list[Message]:
    return await uow.messages.list_sent(user_id)


async def count_unread(
    sender_id: int,
    receiver_id: int,
    product_id: int | None,
    uow: UnitOfWork,
) -> int:
    return await uow.messages.count_unread(sender_id, receiver_id, product_id=product_id)


async def mark_read(
    message_id: uuid.UUID,
    uow: UnitOfWork,
    *,
    principal: Principal | None = None,
) -> Message:
    """Flag a message as read. Re-marking a read message is a no-op."""
    message = await uow.messages.get_by_id(message_id)
    if message is None:
        raise NotFoundError("Message not found")
    if principal is not None:
        assert_can_mark_read(principal, message)
    if message.read:
        return message

    updated = await uow.messages_w.mark_read(message_id)
    if updated is None:
        raise NotFoundError("Message not found")
    await uow.commit()
    return updated
