from __future__ import annotations

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import ForbiddenError, NotFoundError
from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.entities.message import Message


def can_subscribe(user_id: int, conversation: Conversation | None) -> bool:
    return conversation is not None and conversation.has_participant(user_id)


def can_post(user_id: int, conversation: Conversation | None) -> bool:
    return conversation is not None and conversation.has_participant(user_id)


def assert_conversation_access(
    principal: Principal,
    conversation: Conversation | None,
) -> Conversation:
    """Raise if conversation doesn't exist or principal is not a participant.

    Both cases raise NotFoundError so callers cannot discover conversations
    they are not part of.
    """
    if conversation is None or not conversation.has_participant(principal.user_id):
        raise NotFoundError("Conversation not found")
    return conversation


def assert_message_sender(principal: Principal, message: Message) -> None:
    if message.sender_id != principal.user_id:
        raise ForbiddenError("You can only change your own messages")
