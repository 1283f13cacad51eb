from __future__ import annotations

import logging

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.entities.user import User

logger = logging.getLogger(__name__)


class NoopPushSender:
    """Push delivery is not wired to a provider yet; calls are only logged."""

    async def send_new_message(self, message: Message, recipient: User) -> None:
        logger.info(
            "Would send push notification for message %s to user %s",
            message.id, recipient.id,
        )
