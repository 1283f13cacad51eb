from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

EVENT_TYPE = "chat.message_created"


@dataclass(frozen=True, slots=True)
class MessageCreated:
    """Queue payload handed to the notification dispatcher."""

    message_id: UUID
    conversation_id: UUID

    def to_payload(self) -> dict[str, Any]:
        return {
            "message_id": str(self.message_id),
            "conversation_id": str(self.conversation_id),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> MessageCreated:
        return cls(
            message_id=UUID(str(payload["message_id"])),
            conversation_id=UUID(str(payload["conversation_id"])),
        )
