from __future__ import annotations

from typing import Protocol

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.entities.user import User


class PushSender(Protocol):
    async def send_new_message(self, message: Message, recipient: User) -> None: ...
