from __future__ import annotations

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        recipient_id=model.recipient_id,
        content=model.content,
        type=model.type,
        status=model.status,
        read_at=model.read_at,
        regarding_type=model.regarding_type,
        regarding_id=model.regarding_id,
        metadata=model.metadata_,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        id=entity.id,
        conversation_id=entity.conversation_id,
        sender_id=entity.sender_id,
        recipient_id=entity.recipient_id,
        content=entity.content,
        type=entity.type,
        status=entity.status,
        read_at=entity.read_at,
        regarding_type=entity.regarding_type,
        regarding_id=entity.regarding_id,
        metadata_=entity.metadata,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
    )
