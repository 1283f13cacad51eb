from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from marketplace_chat.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def get_between(self, user_a: int, user_b: int) -> Conversation | None:
        """Find the conversation for an unordered pair of users."""
        ...

    async def list_for_user(
        self, user_id: int, *, archived: bool = False, limit: int = 20
    ) -> list[Conversation]: ...


class ConversationWriter(Protocol):
    async def create(self, conversation: Conversation) -> Conversation:
        """Insert a conversation. Raises ConflictError if the pair already exists."""
        ...

    async def touch_last_message_at(
        self, conversation_id: UUID, ts: datetime
    ) -> None: ...

    async def set_archived(
        self, conversation_id: UUID, archived: bool, ts: datetime | None
    ) -> None: ...
