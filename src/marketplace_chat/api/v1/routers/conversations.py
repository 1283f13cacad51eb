from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from marketplace_chat.api.deps import ChannelDep, CurrentPrincipal, UoWDep
from marketplace_chat.api.v1.schemas.conversation import (
    ConversationResponse,
    OpenConversationRequest,
    OpenConversationResponse,
    PatchConversationRequest,
)
from marketplace_chat.api.v1.schemas.message import MessageResponse
from marketplace_chat.application.dto.conversation import ConversationSummaryDTO
from marketplace_chat.application.dto.message import NewMessageDTO
from marketplace_chat.services import conversation_service

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    archived: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
) -> list[ConversationResponse]:
    summaries = await conversation_service.list_user_conversations(
        principal, archived, limit, uow,
    )
    return [ConversationResponse.from_summary(s) for s in summaries]


@router.post("", response_model=OpenConversationResponse)
async def open_conversation(
    body: OpenConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    channel: ChannelDep,
) -> OpenConversationResponse:
    conv = await conversation_service.open_conversation(principal, body.recipient_id, uow)
    msg = None
    if body.content:
        msg = await channel.publish(conv, principal.user_id, NewMessageDTO(content=body.content), uow)
    summary = ConversationSummaryDTO(
        conversation=conv,
        other_participant_id=conv.other_participant(principal.user_id),
        unread_count=0,
    )
    return OpenConversationResponse(
        conversation=ConversationResponse.from_summary(summary),
        message=MessageResponse.model_validate(msg) if msg else None,
    )


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    summary = await conversation_service.get_conversation(conversation_id, principal, uow)
    return ConversationResponse.from_summary(summary)


@router.patch("/{conversation_id}", response_model=ConversationResponse)
async def patch_conversation(
    conversation_id: UUID,
    body: PatchConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.set_archived(
        conversation_id, principal, body.archived, uow,
    )
    unread = await uow.messages.count_unread_for(conv.id, principal.user_id)
    return ConversationResponse.from_summary(
        ConversationSummaryDTO(
            conversation=conv,
            other_participant_id=conv.other_participant(principal.user_id),
            unread_count=unread,
        )
    )
