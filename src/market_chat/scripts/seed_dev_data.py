"""Seed development data: a few buyer/seller threads, with and without a product."""
from __future__ import annotations

import asyncio
import logging

from market_chat.application.dto.message import CreateMessageDTO
from market_chat.config import settings
from market_chat.infrastructure.db.session import create_schema, open_uow
from market_chat.logging_config import configure_logging
from market_chat.services import message_service

logger = logging.getLogger(__name__)

BUYER, SELLER, OTHER_SELLER = 42, 7, 8
PRODUCT = 1001


async def seed() -> None:
    await create_schema()

    script = [
        (BUYER, SELLER, "Hi! Is the bike still available?", PRODUCT),
        (SELLER, BUYER, "Yes, you can pick it up this weekend.", PRODUCT),
        (BUYER, SELLER, "Great, Saturday works.", PRODUCT),
        (SELLER, BUYER, "Thanks for the quick payment last time!", None),
        (BUYER, OTHER_SELLER, "Do you ship to Lisbon?", None),
    ]
    async with open_uow() as uow:
        last = None
        for sender_id, receiver_id, content, product_id in script:
            last = await message_service.create_message(
                CreateMessageDTO(
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    content=content,
                    product_id=product_id,
                ),
                uow,
            )
        # A reply that inherits the product of the message it answers.
        first = (await message_service.list_conversation(BUYER, SELLER, PRODUCT, uow))[0]
        await message_service.create_message(
            CreateMessageDTO(
                sender_id=SELLER,
                receiver_id=BUYER,
                content="It also comes with a lock.",
                replied_to_id=first.id,
            ),
            uow,
        )
    logger.info("Seeded %d messages (last %s)", len(script) + 1, last.id if last else "-")


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
