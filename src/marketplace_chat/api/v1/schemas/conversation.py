from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from marketplace_chat.application.dto.conversation import ConversationSummaryDTO
from marketplace_chat.api.v1.schemas.message import MessageResponse


class ConversationResponse(BaseModel):
    id: UUID
    participant1_id: int
    participant2_id: int
    other_participant_id: int
    unread_count: int = 0
    last_message_at: datetime | None
    archived: bool
    archived_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_summary(cls, summary: ConversationSummaryDTO) -> ConversationResponse:
        conv = summary.conversation
        return cls(
            id=conv.id,
            participant1_id=conv.participant1_id,
            participant2_id=conv.participant2_id,
            other_participant_id=summary.other_participant_id,
            unread_count=summary.unread_count,
            last_message_at=conv.last_message_at,
            archived=conv.archived,
            archived_at=conv.archived_at,
            created_at=conv.created_at,
            updated_at=conv.updated_at,
        )


class OpenConversationRequest(BaseModel):
    recipient_id: int
    content: str | None = None


class OpenConversationResponse(BaseModel):
    conversation: ConversationResponse
    message: MessageResponse | None = None


class PatchConversationRequest(BaseModel):
    archived: bool = Field(...)
