"""Seed development data: a conversation between two existing users, with a few messages.

The users and profiles tables belong to the main application; pass ids of
accounts that already exist there.

    python -m marketplace_chat.scripts.seed_dev_data 1 2
"""
from __future__ import annotations

import asyncio
import logging
import sys

from marketplace_chat.application.dto.message import NewMessageDTO
from marketplace_chat.domain.value_objects.enums import MessageType
from marketplace_chat.infrastructure.db.session import uow_factory
from marketplace_chat.services import conversation_service, message_service

logger = logging.getLogger(__name__)


async def seed(guest_id: int, host_id: int) -> None:
    async with uow_factory() as uow:
        conv, created = await conversation_service.find_or_create_between(guest_id, host_id, uow)

        script = [
            (guest_id, MessageType.TEXT, "Hi! Is the flat on Baker Street still available in May?"),
            (host_id, MessageType.TEXT, "Hello, yes it is. How many guests?"),
            (guest_id, MessageType.BOOKING_REQUEST, "Two adults, 3rd to 10th of May."),
            (host_id, MessageType.SYSTEM_MESSAGE, "Booking request received."),
        ]
        for sender_id, kind, content in script:
            await message_service.create_message(
                conv, sender_id, NewMessageDTO(content=content, type=kind), uow,
            )

        logger.info(
            "Seeded conversation %s (%s) with %d messages",
            conv.id, "new" if created else "existing", len(script),
        )


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    guest_id, host_id = (int(a) for a in sys.argv[1:3]) if len(sys.argv) >= 3 else (1, 2)
    asyncio.run(seed(guest_id, host_id))


if __name__ == "__main__":
    main()
