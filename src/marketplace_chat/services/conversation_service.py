from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from marketplace_chat.application.dto.conversation import ConversationSummaryDTO
from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
)
from marketplace_chat.application.policies.permissions import assert_conversation_access
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.domain.entities.conversation import Conversation, ordered_pair

logger = logging.getLogger(__name__)


async def find_or_create_between(
    user_id: int,
    other_id: int,
    uow: UnitOfWork,
    *,
    now: datetime | None = None,
) -> tuple[Conversation, bool]:
    """Return the conversation between two users, creating it if needed.

    Returns (conversation, created). Two concurrent callers may both miss the
    lookup; the loser hits the unique pair constraint and re-reads.
    """
    if user_id == other_id:
        raise ValidationError("Participants must be different users")

    existing = await uow.conversations.get_between(user_id, other_id)
    if existing is not None:
        return existing, False

    now = now or datetime.now(timezone.utc)
    first, second = ordered_pair(user_id, other_id)
    conversation = Conversation(
        id=uuid.uuid4(),
        participant1_id=first,
        participant2_id=second,
        last_message_at=None,
        archived=False,
        archived_at=None,
        created_at=now,
        updated_at=now,
    )
    try:
        conversation = await uow.conversations_w.create(conversation)
    except ConflictError:
        await uow.rollback()
        existing = await uow.conversations.get_between(user_id, other_id)
        if existing is None:
            raise
        logger.info("Conversation %s-%s created concurrently, reusing", first, second)
        return existing, False

    await uow.commit()
    return conversation, True


async def open_conversation(
    principal: Principal,
    recipient_id: int,
    uow: UnitOfWork,
) -> Conversation:
    """Start (or resume) a conversation with another user.

    An optional first message is posted by the caller through the channel so
    it reaches live subscribers in order.
    """
    recipient = await uow.users.get_by_id(recipient_id)
    if recipient is None:
        raise NotFoundError("Recipient not found")

    conversation, _ = await find_or_create_between(principal.user_id, recipient_id, uow)
    return conversation


async def list_user_conversations(
    principal: Principal,
    archived: bool,
    limit: int,
    uow: UnitOfWork,
) -> list[ConversationSummaryDTO]:
    conversations = await uow.conversations.list_for_user(
        principal.user_id, archived=archived, limit=limit,
    )
    summaries: list[ConversationSummaryDTO] = []
    for conversation in conversations:
        unread = await uow.messages.count_unread_for(conversation.id, principal.user_id)
        summaries.append(
            ConversationSummaryDTO(
                conversation=conversation,
                other_participant_id=conversation.other_participant(principal.user_id),
                unread_count=unread,
            )
        )
    return summaries


async def get_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
    *,
    now: datetime | None = None,
) -> ConversationSummaryDTO:
    """Show a conversation. Viewing it marks everything addressed to the caller as read."""
    conversation = await uow.conversations.get_by_id(conversation_id)
    conversation = assert_conversation_access(principal, conversation)
    await uow.messages_w.mark_all_read_for(
        conversation.id, principal.user_id, now or datetime.now(timezone.utc),
    )
    await uow.commit()
    return ConversationSummaryDTO(
        conversation=conversation,
        other_participant_id=conversation.other_participant(principal.user_id),
        unread_count=0,
    )


async def set_archived(
    conversation_id: uuid.UUID,
    principal: Principal,
    archived: bool,
    uow: UnitOfWork,
    *,
    now: datetime | None = None,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)
    ts = (now or datetime.now(timezone.utc)) if archived else None
    await uow.conversations_w.set_archived(conversation_id, archived, ts)
    await uow.commit()
    updated = await uow.conversations.get_by_id(conversation_id)
    if updated is None:
        raise NotFoundError("Conversation not found")
    return updated
