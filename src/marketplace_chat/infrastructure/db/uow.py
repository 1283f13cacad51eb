from __future__ import annotations

from contextlib import asynccontextmanager
from types import TracebackType
from typing import AsyncIterator, Self

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace_chat.infrastructure.db.repositories.conversation import (
    ConversationReaderRepo,
    ConversationWriterRepo,
)
from marketplace_chat.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from marketplace_chat.infrastructure.db.repositories.outbox import OutboxWriterRepo
from marketplace_chat.infrastructure.db.repositories.user import UserReaderRepo


class SqlAlchemyUoW:
    """Concrete Unit-of-Work backed by a single AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.conversations = ConversationReaderRepo(session)
        self.conversations_w = ConversationWriterRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.users = UserReaderRepo(session)
        self.outbox = OutboxWriterRepo(session)

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()


def make_uow_factory(sessionmaker: async_sessionmaker[AsyncSession]):
    """Build a UoWFactory: each call opens a fresh session for one operation."""

    @asynccontextmanager
    async def _factory() -> AsyncIterator[SqlAlchemyUoW]:
        async with sessionmaker() as session:
            async with SqlAlchemyUoW(session) as uow:
                yield uow

    return _factory
