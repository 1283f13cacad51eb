from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field


class CreateMessageRequest(BaseModel):
    # Validated by the service so REST and the channel report identical errors.
    content: str | None = None
    message_type: str | None = None
    regarding_type: str | None = None
    regarding_id: int | None = None
    metadata: dict[str, Any] | None = None


class UpdateMessageStatusRequest(BaseModel):
    status: Literal["read", "archived"]


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: int
    recipient_id: int
    content: str
    message_type: str = Field(validation_alias="type")
    status: str
    read_at: datetime | None
    regarding_type: str | None
    regarding_id: int | None
    metadata: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}
