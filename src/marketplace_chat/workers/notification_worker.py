"""Notification worker: drains message_created facts from the outbox.

Each fact is handed to the NotificationDispatcher. Transient infrastructure
errors are retried with exponential backoff up to a bounded number of
attempts; a fact whose message no longer exists is discarded.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis
from redis import exceptions as redis_exc
from sqlalchemy import exc as sa_exc

from marketplace_chat.application.exceptions import NotFoundError
from marketplace_chat.application.policies.notifications import NotificationPolicy
from marketplace_chat.application.repositories.outbox import OutboxRecord
from marketplace_chat.application.uow import UoWFactory
from marketplace_chat.config import settings
from marketplace_chat.domain.events.message_created import EVENT_TYPE, MessageCreated
from marketplace_chat.infrastructure.bus.redis_pubsub import RedisTopicBroadcaster
from marketplace_chat.infrastructure.mail.smtp_mailer import SmtpMailSender
from marketplace_chat.infrastructure.push.noop import NoopPushSender
from marketplace_chat.infrastructure.render.fragment import HtmlFragmentRenderer
from marketplace_chat.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 5
MAX_DELAY_SECONDS = 300

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    TimeoutError,
    ConnectionError,
    sa_exc.TimeoutError,
    sa_exc.OperationalError,
    redis_exc.TimeoutError,
    redis_exc.ConnectionError,
)


def _calc_backoff(attempts: int, now: datetime | None = None) -> datetime:
    delay = min(BASE_DELAY_SECONDS * (2 ** attempts), MAX_DELAY_SECONDS)
    return (now or datetime.now(timezone.utc)) + timedelta(seconds=delay)


class NotificationWorker:
    def __init__(
        self,
        uow_factory: UoWFactory,
        dispatcher: NotificationDispatcher,
        *,
        batch_size: int = 50,
        max_attempts: int = 5,
        poll_interval: float = 1.0,
        lease_seconds: int = 300,
    ) -> None:
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher
        self._batch_size = batch_size
        self._max_attempts = max_attempts
        self._poll_interval = poll_interval
        self._lease_seconds = lease_seconds

    async def run_forever(self) -> None:
        logger.info(
            "Notification worker started (poll=%.1fs, batch=%d, max_attempts=%d)",
            self._poll_interval, self._batch_size, self._max_attempts,
        )
        while True:
            try:
                await self.process_batch()
            except Exception:
                logger.exception("Notification worker loop error")
            await asyncio.sleep(self._poll_interval)

    async def process_batch(self) -> int:
        """Claim and process one batch. Returns the number of records claimed."""
        async with self._uow_factory() as uow:
            batch = await uow.outbox.fetch_pending(self._batch_size, self._lease_seconds)
            await uow.commit()

        for record in batch:
            try:
                await self._process(record)
            except Exception:
                logger.exception(
                    "Outbox record %d could not be finalized; it is retried once its claim expires",
                    record.id,
                )
        return len(batch)

    async def _process(self, record: OutboxRecord) -> None:
        if record.event_type != EVENT_TYPE:
            await self._finish(record, discarded=f"unknown event type {record.event_type}")
            return
        try:
            fact = MessageCreated.from_payload(record.payload)
        except (KeyError, ValueError, TypeError):
            logger.warning("Outbox record %d has a malformed payload", record.id)
            await self._finish(record, discarded="malformed payload")
            return

        try:
            async with self._uow_factory() as uow:
                await self._dispatcher.dispatch(fact, uow)
        except NotFoundError as exc:
            logger.info("Discarding outbox record %d: %s", record.id, exc.detail)
            await self._finish(record, discarded=exc.detail)
        except RETRYABLE_ERRORS as exc:
            attempt_no = record.attempts + 1
            if attempt_no >= self._max_attempts:
                logger.error(
                    "Outbox record %d failed permanently after %d attempts: %r",
                    record.id, attempt_no, exc,
                )
                await self._finish(record, dead=repr(exc))
            else:
                logger.warning(
                    "Outbox record %d attempt %d/%d failed, will retry: %r",
                    record.id, attempt_no, self._max_attempts, exc,
                )
                await self._finish(record, retry=repr(exc))
        except Exception as exc:
            logger.exception("Outbox record %d failed with a non-retryable error", record.id)
            await self._finish(record, dead=repr(exc))
        else:
            await self._finish(record)

    async def _finish(
        self,
        record: OutboxRecord,
        *,
        retry: str | None = None,
        dead: str | None = None,
        discarded: str | None = None,
    ) -> None:
        async with self._uow_factory() as uow:
            if retry is not None:
                await uow.outbox.mark_failed(record.id, _calc_backoff(record.attempts), retry)
            elif dead is not None:
                await uow.outbox.mark_dead(record.id, dead)
            elif discarded is not None:
                await uow.outbox.mark_discarded(record.id, discarded)
            else:
                await uow.outbox.mark_sent([record.id])
            await uow.commit()


async def run_notification_worker() -> None:
    from marketplace_chat.infrastructure.db.session import uow_factory

    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    renderer = HtmlFragmentRenderer()
    dispatcher = NotificationDispatcher(
        mailer=SmtpMailSender(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            tls=settings.SMTP_TLS,
            from_address=settings.MAIL_FROM,
            base_url=settings.APP_BASE_URL,
        ),
        push=NoopPushSender(),
        broadcaster=RedisTopicBroadcaster(redis, settings.REDIS_PUBSUB_CHANNEL),
        renderer=renderer,
        policy=NotificationPolicy(
            email_enabled=settings.NOTIFY_EMAIL_ENABLED,
            push_enabled=settings.NOTIFY_PUSH_ENABLED,
        ),
    )
    worker = NotificationWorker(
        uow_factory,
        dispatcher,
        batch_size=settings.NOTIFY_BATCH_SIZE,
        max_attempts=settings.NOTIFY_MAX_ATTEMPTS,
        poll_interval=settings.NOTIFY_POLL_INTERVAL,
        lease_seconds=settings.NOTIFY_CLAIM_LEASE_SECONDS,
    )
    try:
        await worker.run_forever()
    finally:
        await redis.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run_notification_worker())


if __name__ == "__main__":
    main()
