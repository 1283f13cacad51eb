from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.value_objects.enums import MessageType


def iso8601(ts: datetime | None) -> str | None:
    """Fixed UTC timestamp format used on every channel payload."""
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True, slots=True)
class NewMessageDTO:
    content: str | None
    type: MessageType = MessageType.TEXT
    regarding_type: str | None = None
    regarding_id: int | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class MessageView:
    """Serialized form of a message delivered on the real-time channel."""

    id: str
    content: str
    sender_id: int
    recipient_id: int
    message_type: str
    status: str
    created_at: str
    sender_name: str

    @classmethod
    def from_message(cls, message: Message, sender_name: str) -> MessageView:
        return cls(
            id=str(message.id),
            content=message.content,
            sender_id=message.sender_id,
            recipient_id=message.recipient_id,
            message_type=str(message.type),
            status=str(message.status),
            created_at=iso8601(message.created_at) or "",
            sender_name=sender_name,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "sender_id": self.sender_id,
            "recipient_id": self.recipient_id,
            "message_type": self.message_type,
            "status": self.status,
            "created_at": self.created_at,
            "sender_name": self.sender_name,
        }


def message_created_event(view: MessageView, html: str) -> dict[str, Any]:
    return {"action": "message_created", "message": view.as_dict(), "html": html}
