from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_chat.application.repositories.outbox import OutboxRecord
from marketplace_chat.domain.value_objects.enums import OutboxStatus
from marketplace_chat.infrastructure.db.models.outbox import OutboxMessageModel


class OutboxWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        model = OutboxMessageModel(event_type=event_type, payload=payload)
        self._session.add(model)
        await self._session.flush()

    async def fetch_pending(self, batch_size: int, lease_seconds: int) -> list[OutboxRecord]:
        now = datetime.now(timezone.utc)
        due = OutboxMessageModel.status.in_([OutboxStatus.PENDING, OutboxStatus.FAILED]) & (
            OutboxMessageModel.next_retry_at.is_(None) | (OutboxMessageModel.next_retry_at <= now)
        )
        # A claim older than the lease belongs to a worker that died mid-batch.
        stale = (OutboxMessageModel.status == OutboxStatus.PROCESSING) & (
            OutboxMessageModel.claimed_at <= now - timedelta(seconds=lease_seconds)
        )
        stmt = (
            select(OutboxMessageModel)
            .where(due | stale)
            .order_by(OutboxMessageModel.created_at.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        result = await self._session.execute(stmt)
        rows = result.scalars().all()

        if rows:
            ids = [r.id for r in rows]
            await self._session.execute(
                update(OutboxMessageModel)
                .where(OutboxMessageModel.id.in_(ids))
                .values(status=OutboxStatus.PROCESSING, claimed_at=now)
            )
            await self._session.flush()

        return [
            OutboxRecord(
                id=r.id,
                event_type=r.event_type,
                payload=r.payload,
                attempts=r.attempts,
            )
            for r in rows
        ]

    async def mark_sent(self, ids: list[int]) -> None:
        if not ids:
            return
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(ids))
            .values(status=OutboxStatus.SENT)
        )
        await self._session.execute(stmt)

    async def mark_failed(self, record_id: int, next_retry_at: datetime, error: str) -> None:
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(
                status=OutboxStatus.FAILED,
                attempts=OutboxMessageModel.attempts + 1,
                next_retry_at=next_retry_at,
                last_error=error,
            )
        )
        await self._session.execute(stmt)

    async def mark_dead(self, record_id: int, error: str) -> None:
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(
                status=OutboxStatus.DEAD,
                attempts=OutboxMessageModel.attempts + 1,
                next_retry_at=None,
                last_error=error,
            )
        )
        await self._session.execute(stmt)

    async def mark_discarded(self, record_id: int, reason: str) -> None:
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(status=OutboxStatus.DISCARDED, next_retry_at=None, last_error=reason)
        )
        await self._session.execute(stmt)
