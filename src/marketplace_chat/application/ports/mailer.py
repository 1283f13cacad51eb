from __future__ import annotations

from typing import Protocol

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.entities.user import User


class MailSender(Protocol):
    async def send_new_message_notification(
        self, message: Message, sender: User | None, recipient: User
    ) -> None: ...
