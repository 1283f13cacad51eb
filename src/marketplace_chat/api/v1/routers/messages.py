from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, Response

from marketplace_chat.api.deps import ChannelDep, CurrentPrincipal, UoWDep
from marketplace_chat.api.v1.schemas.common import PaginatedResponse
from marketplace_chat.api.v1.schemas.message import (
    CreateMessageRequest,
    MessageResponse,
    UpdateMessageStatusRequest,
)
from marketplace_chat.application.dto.message import NewMessageDTO
from marketplace_chat.config import settings
from marketplace_chat.infrastructure.db.repositories._cursor import encode_cursor
from marketplace_chat.services import message_service

router = APIRouter(prefix="/api/v1", tags=["messages"])


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=PaginatedResponse[MessageResponse],
)
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    cursor: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> PaginatedResponse[MessageResponse]:
    messages = await message_service.list_messages(
        conversation_id, principal, cursor, limit, uow,
    )
    next_cursor = None
    if len(messages) == limit:
        last = messages[-1]
        next_cursor = encode_cursor(last.created_at, last.id)
    return PaginatedResponse[MessageResponse](
        items=[MessageResponse.model_validate(m) for m in messages],
        next_cursor=next_cursor,
    )


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=201,
)
async def create_message(
    conversation_id: UUID,
    body: CreateMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    channel: ChannelDep,
) -> MessageResponse:
    new = NewMessageDTO(
        content=body.content,
        type=message_service.parse_message_type(body.message_type),
        regarding_type=body.regarding_type,
        regarding_id=body.regarding_id,
        metadata=body.metadata,
    )
    conv = await message_service.load_conversation_for(conversation_id, principal, uow)
    # Live subscribers on this process see REST-created messages too.
    msg = await channel.publish(conv, principal.user_id, new, uow)
    return MessageResponse.model_validate(msg)


@router.patch("/messages/{message_id}", response_model=MessageResponse)
async def update_message_status(
    message_id: UUID,
    body: UpdateMessageStatusRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await message_service.set_message_status(message_id, principal, body.status, uow)
    return MessageResponse.model_validate(msg)


@router.delete("/messages/{message_id}", status_code=204)
async def delete_message(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> Response:
    await message_service.delete_message(
        message_id, principal, uow, window_seconds=settings.MESSAGE_EDIT_WINDOW_SECONDS,
    )
    return Response(status_code=204)
