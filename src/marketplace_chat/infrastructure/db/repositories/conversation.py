from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_chat.application.exceptions import ConflictError
from marketplace_chat.domain.entities.conversation import Conversation, ordered_pair
from marketplace_chat.infrastructure.db.mappers import conversation as mapper
from marketplace_chat.infrastructure.db.models.conversation import ConversationModel


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id)
        return mapper.model_to_entity(result) if result else None

    async def get_between(self, user_a: int, user_b: int) -> Conversation | None:
        first, second = ordered_pair(user_a, user_b)
        stmt = select(ConversationModel).where(
            ConversationModel.participant1_id == first,
            ConversationModel.participant2_id == second,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_for_user(
        self,
        user_id: int,
        *,
        archived: bool = False,
        limit: int = 20,
    ) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(
                (ConversationModel.participant1_id == user_id)
                | (ConversationModel.participant2_id == user_id),
                ConversationModel.archived.is_(archived),
            )
            .order_by(ConversationModel.last_message_at.desc().nullslast(), ConversationModel.id)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, conversation: Conversation) -> Conversation:
        model = mapper.entity_to_model(conversation)
        self._session.add(model)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise ConflictError("Conversation already exists") from exc
        return mapper.model_to_entity(model)

    async def touch_last_message_at(
        self,
        conversation_id: UUID,
        ts: datetime,
    ) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(last_message_at=ts)
        )
        await self._session.execute(stmt)

    async def set_archived(
        self,
        conversation_id: UUID,
        archived: bool,
        ts: datetime | None,
    ) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(archived=archived, archived_at=ts if archived else None)
        )
        await self._session.execute(stmt)
