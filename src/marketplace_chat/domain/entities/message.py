from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.value_objects.enums import MessageStatus

DEFAULT_MAX_CONTENT_LENGTH = 5000


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: int
    recipient_id: int
    content: str
    type: str
    status: str
    read_at: datetime | None
    regarding_type: str | None
    regarding_id: int | None
    metadata: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_unread(self) -> bool:
        return self.status == MessageStatus.UNREAD

    @property
    def is_read(self) -> bool:
        return self.status == MessageStatus.READ

    @property
    def is_deleted(self) -> bool:
        return self.status == MessageStatus.DELETED


def validate_new_message(
    conversation: Conversation,
    sender_id: int,
    recipient_id: int,
    content: str | None,
    *,
    max_length: int = DEFAULT_MAX_CONTENT_LENGTH,
) -> list[str]:
    """Return human-readable validation errors; empty list means valid."""
    errors: list[str] = []
    if content is None or not content.strip():
        errors.append("Content can't be blank")
    elif len(content) > max_length:
        errors.append(f"Content is too long (maximum is {max_length} characters)")
    if sender_id == recipient_id:
        errors.append("Recipient can't send message to yourself")
    if not conversation.has_participant(sender_id):
        errors.append("Sender must be part of the conversation")
    if not conversation.has_participant(recipient_id):
        errors.append("Recipient must be part of the conversation")
    return errors
