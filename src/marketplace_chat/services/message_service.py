from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from marketplace_chat.application.dto.message import NewMessageDTO
from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import (
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from marketplace_chat.application.policies.permissions import (
    assert_conversation_access,
    assert_message_sender,
)
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.entities.message import (
    DEFAULT_MAX_CONTENT_LENGTH,
    Message,
    validate_new_message,
)
from marketplace_chat.domain.events.message_created import EVENT_TYPE, MessageCreated
from marketplace_chat.domain.value_objects.enums import MessageStatus, MessageType

DEFAULT_EDIT_WINDOW_SECONDS = 15 * 60


def parse_message_type(raw: object) -> MessageType:
    """Missing or empty means text; anything outside the closed set is invalid."""
    if raw is None or raw == "":
        return MessageType.TEXT
    try:
        return MessageType(raw)
    except ValueError:
        raise ValidationError("Message type is not included in the list") from None


async def create_message(
    conversation: Conversation,
    sender_id: int,
    new: NewMessageDTO,
    uow: UnitOfWork,
    *,
    now: datetime | None = None,
    max_length: int = DEFAULT_MAX_CONTENT_LENGTH,
) -> Message:
    """Persist a message from sender to the other participant.

    The notification fact is queued in the same transaction, so it exists iff
    the message does.
    """
    content = new.content if isinstance(new.content, str) else None
    recipient_id = conversation.other_participant(sender_id)
    errors = validate_new_message(
        conversation, sender_id, recipient_id, content, max_length=max_length,
    )
    if errors:
        raise ValidationError(errors)

    now = now or datetime.now(timezone.utc)
    msg = Message(
        id=uuid.uuid4(),
        conversation_id=conversation.id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        content=content,
        type=new.type.value,
        status=MessageStatus.UNREAD.value,
        read_at=None,
        regarding_type=new.regarding_type,
        regarding_id=new.regarding_id,
        metadata=new.metadata,
        created_at=now,
        updated_at=now,
    )
    msg = await uow.messages_w.create(msg)
    await uow.conversations_w.touch_last_message_at(conversation.id, msg.created_at)

    if new.type.notifies_recipient:
        fact = MessageCreated(message_id=msg.id, conversation_id=conversation.id)
        await uow.outbox.add(EVENT_TYPE, fact.to_payload())
    await uow.commit()
    return msg


async def mark_message_read(
    conversation: Conversation,
    message_id: uuid.UUID,
    user_id: int,
    uow: UnitOfWork,
    *,
    now: datetime | None = None,
) -> Message | None:
    """Mark one message read on behalf of its recipient.

    Archived messages become read too, keeping an earlier read_at. Returns
    the message as it stands afterwards (already-read messages come back
    unchanged), or None when the message is not in this conversation, not
    addressed to the user, or deleted.
    """
    message = await uow.messages.get_in_conversation(conversation.id, message_id)
    if message is None or message.recipient_id != user_id:
        return None
    if message.is_deleted:
        return None
    if message.is_read:
        return message

    updated = await uow.messages_w.mark_read(
        message_id, user_id, now or datetime.now(timezone.utc),
    )
    await uow.commit()
    if updated is None:
        # Lost the race to a concurrent marker; report the winner's read_at.
        return await uow.messages.get_by_id(message_id)
    return updated


async def mark_conversation_read(
    conversation: Conversation,
    user_id: int,
    uow: UnitOfWork,
    *,
    now: datetime | None = None,
) -> int:
    count = await uow.messages_w.mark_all_read_for(
        conversation.id, user_id, now or datetime.now(timezone.utc),
    )
    await uow.commit()
    return count


async def load_conversation_for(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    """The conversation, if the principal takes part in it; NotFoundError otherwise."""
    conversation = await uow.conversations.get_by_id(conversation_id)
    return assert_conversation_access(principal, conversation)


async def list_messages(
    conversation_id: uuid.UUID,
    principal: Principal,
    cursor: str | None,
    limit: int,
    uow: UnitOfWork,
) -> list[Message]:
    await load_conversation_for(conversation_id, principal, uow)
    return await uow.messages.list_messages(
        conversation_id, cursor=cursor, limit=limit,
    )


async def _load_visible_message(
    message_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> tuple[Conversation, Message]:
    message = await uow.messages.get_by_id(message_id)
    if message is None or message.is_deleted:
        raise NotFoundError("Message not found")
    conversation = await uow.conversations.get_by_id(message.conversation_id)
    if conversation is None or not conversation.has_participant(principal.user_id):
        raise NotFoundError("Message not found")
    return conversation, message


async def set_message_status(
    message_id: uuid.UUID,
    principal: Principal,
    status: str,
    uow: UnitOfWork,
    *,
    now: datetime | None = None,
) -> Message:
    """Apply a client-requested status change.

    ``read`` is only honoured for the recipient; ``archived`` for either
    participant. Content and the other statuses cannot be changed here.
    """
    conversation, message = await _load_visible_message(message_id, principal, uow)

    if status == MessageStatus.READ:
        if message.recipient_id != principal.user_id:
            raise ForbiddenError("Only the recipient can mark a message as read")
        updated = await mark_message_read(
            conversation, message.id, principal.user_id, uow, now=now,
        )
        return updated or message

    if status == MessageStatus.ARCHIVED:
        updated = await uow.messages_w.set_status(message.id, MessageStatus.ARCHIVED.value)
        await uow.commit()
        return updated or message

    raise ValidationError("Status is not included in the list")


async def delete_message(
    message_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
    *,
    now: datetime | None = None,
    window_seconds: int = DEFAULT_EDIT_WINDOW_SECONDS,
) -> None:
    """Soft delete, allowed to the sender only and only shortly after sending."""
    _, message = await _load_visible_message(message_id, principal, uow)
    assert_message_sender(principal, message)

    now = now or datetime.now(timezone.utc)
    if now - message.created_at > timedelta(seconds=window_seconds):
        raise ForbiddenError(
            f"Messages can only be deleted within {window_seconds // 60} minutes of sending"
        )
    await uow.messages_w.set_status(message.id, MessageStatus.DELETED.value)
    await uow.commit()
