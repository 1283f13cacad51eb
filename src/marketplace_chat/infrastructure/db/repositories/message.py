from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.value_objects.enums import MessageStatus
from marketplace_chat.infrastructure.db.mappers import message as mapper
from marketplace_chat.infrastructure.db.models.message import MessageModel
from marketplace_chat.infrastructure.db.repositories._cursor import decode_cursor


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, message_id: UUID) -> Message | None:
        model = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(model) if model else None

    async def get_in_conversation(
        self,
        conversation_id: UUID,
        message_id: UUID,
    ) -> Message | None:
        stmt = select(MessageModel).where(
            MessageModel.id == message_id,
            MessageModel.conversation_id == conversation_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        cursor: str | None = None,
        limit: int = 50,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.status != MessageStatus.DELETED,
            )
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
            .limit(limit)
        )
        if cursor:
            ts, mid = decode_cursor(cursor)
            stmt = stmt.where(
                (MessageModel.created_at > ts)
                | ((MessageModel.created_at == ts) & (MessageModel.id > mid))
            )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def count_unread_for(self, conversation_id: UUID, user_id: int) -> int:
        stmt = select(func.count(MessageModel.id)).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.recipient_id == user_id,
            MessageModel.status == MessageStatus.UNREAD,
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, message: Message) -> Message:
        model = mapper.entity_to_model(message)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def mark_read(
        self,
        message_id: UUID,
        recipient_id: int,
        ts: datetime,
    ) -> Message | None:
        # Single conditional UPDATE: concurrent markers cannot both win.
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                MessageModel.recipient_id == recipient_id,
                MessageModel.status.not_in([MessageStatus.READ, MessageStatus.DELETED]),
            )
            .values(status=MessageStatus.READ, read_at=func.coalesce(MessageModel.read_at, ts))
            .returning(MessageModel)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def mark_all_read_for(
        self,
        conversation_id: UUID,
        recipient_id: int,
        ts: datetime,
    ) -> int:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.recipient_id == recipient_id,
                MessageModel.status == MessageStatus.UNREAD,
            )
            .values(status=MessageStatus.READ, read_at=ts)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def set_status(self, message_id: UUID, status: str) -> Message | None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(status=status)
            .returning(MessageModel)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

