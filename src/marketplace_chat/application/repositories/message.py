from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from marketplace_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def get_in_conversation(
        self, conversation_id: UUID, message_id: UUID
    ) -> Message | None: ...

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        cursor: str | None = None,
        limit: int = 50,
    ) -> list[Message]:
        """Oldest first, soft-deleted messages excluded."""
        ...

    async def count_unread_for(self, conversation_id: UUID, user_id: int) -> int: ...


class MessageWriter(Protocol):
    async def create(self, message: Message) -> Message: ...

    async def mark_read(
        self, message_id: UUID, recipient_id: int, ts: datetime
    ) -> Message | None:
        """Transition unread -> read for the recipient.

        Returns the updated message, or None when nothing changed (wrong
        recipient, already read, or missing).
        """
        ...

    async def mark_all_read_for(
        self, conversation_id: UUID, recipient_id: int, ts: datetime
    ) -> int:
        """Mark every unread message addressed to recipient. Returns row count."""
        ...

    async def set_status(self, message_id: UUID, status: str) -> Message | None:
        """Move to archived/deleted. read_at is left as recorded."""
        ...
