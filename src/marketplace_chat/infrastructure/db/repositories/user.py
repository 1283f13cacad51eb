from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_chat.domain.entities.user import User
from marketplace_chat.infrastructure.db.mappers import user as mapper
from marketplace_chat.infrastructure.db.models.user import UserModel


class UserReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: int) -> User | None:
        model = await self._session.get(UserModel, user_id)
        return mapper.model_to_entity(model) if model else None
