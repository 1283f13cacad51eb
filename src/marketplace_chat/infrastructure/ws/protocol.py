"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # subscribe | unsubscribe | perform | ping
    conversation_id: UUID | None = None
    action: str | None = None  # speak | typing | mark_as_read | update_presence
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # confirm_subscription | reject_subscription | event | pong | error
    conversation_id: UUID | None = None
    data: dict[str, Any] = {}
