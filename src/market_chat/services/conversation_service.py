from __future__ import annotations

import logging

from market_chat.application.ports.directory import Directory
from market_chat.application.uow import UnitOfWork
from market_chat.domain.entities.conversation import Conversation
from market_chat.domain.entities.message import Message
from market_chat.domain.value_objects.conversation_key import ConversationKey
from market_chat.services.summaries import SummaryResolver

logger = logging.getLogger(__name__)


def group_latest(user_id: int, messages: list[Message]) -> dict[ConversationKey, Message]:
    """Map each thread key to its newest message.

    ``messages`` must be ordered newest first.
    """
    latest: dict[ConversationKey, Message] = {}
    for message in messages:
        latest.setdefault(ConversationKey.for_viewer(user_id, message), message)
    return latest


async def list_conversations(
    user_id: int,
    uow: UnitOfWork,
    directory: Directory | None = None,
) -> list[Conversation]:
    """Derive the user's inbox of distinct threads, newest activity first."""
    messages = await uow.messages.list_for_user(user_id)
    summaries = SummaryResolver(directory)

    conversations: list[Conversation] = []
    for key, latest in group_latest(user_id, messages).items():
        unread: int | None
        try:
            async with uow.savepoint():
                unread = await uow.messages.count_unread(
                    key.other_user_id, user_id, product_id=key.product_id,
                )
        except Exception:
            logger.warning(
                "Unread count unavailable for user %s thread %s/%s",
                user_id, key.other_user_id, key.product_id,
                exc_info=True,
            )
            unread = None
        conversations.append(
            Conversation(
                key=key,
                other_user=await summaries.user(key.other_user_id),
                product=await summaries.product(key.product_id),
                latest_message=latest,
                unread_count=unread,
            )
        )

    conversations.sort(key=lambda c: c.latest_message.created_at, reverse=True)
    return conversations
