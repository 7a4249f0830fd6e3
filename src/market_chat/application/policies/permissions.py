from __future__ import annotations

from market_chat.application.dto.principal import Principal
from market_chat.application.exceptions import ForbiddenError
from market_chat.domain.entities.message import Message


def assert_acting_as(principal: Principal, user_id: int) -> None:
    """Raise unless the caller is ``user_id`` (admins may act for anyone)."""
    if principal.is_admin:
        return
    if principal.subject_id != user_id:
        raise ForbiddenError("Cannot act on behalf of another user")


def assert_party_to(principal: Principal, user_a: int, user_b: int) -> None:
    if principal.is_admin:
        return
    if principal.subject_id not in (user_a, user_b):
        raise ForbiddenError("Not a participant of this conversation")


def assert_can_mark_read(principal: Principal, message: Message) -> None:
    # Only the recipient acknowledges a message.
    if principal.is_admin:
        return
    if message.receiver_id != principal.subject_id:
        raise ForbiddenError("Only the receiver can mark a message as read")
