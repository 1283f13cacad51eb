from __future__ import annotations

from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        participant1_id=model.participant1_id,
        participant2_id=model.participant2_id,
        last_message_at=model.last_message_at,
        archived=model.archived,
        archived_at=model.archived_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_model(entity: Conversation) -> ConversationModel:
    return ConversationModel(
        id=entity.id,
        participant1_id=entity.participant1_id,
        participant2_id=entity.participant2_id,
        last_message_at=entity.last_message_at,
        archived=entity.archived,
        archived_at=entity.archived_at,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
    )
