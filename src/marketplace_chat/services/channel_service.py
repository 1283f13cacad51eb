"""Per-conversation real-time channel: subscribe, then speak/typing/read/presence.

Every action reloads the conversation and re-checks membership before doing
anything; unauthorized actions produce no response at all.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, assert_never
from uuid import UUID

from marketplace_chat.application.dto.message import (
    MessageView,
    NewMessageDTO,
    iso8601,
    message_created_event,
)
from marketplace_chat.application.exceptions import ValidationError
from marketplace_chat.application.outcome import attempt
from marketplace_chat.application.policies.permissions import can_post, can_subscribe
from marketplace_chat.application.ports.clock import Clock, SystemClock
from marketplace_chat.application.ports.renderer import FragmentRenderer
from marketplace_chat.application.uow import UnitOfWork, UoWFactory
from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.entities.message import DEFAULT_MAX_CONTENT_LENGTH, Message
from marketplace_chat.domain.entities.user import display_name_for
from marketplace_chat.domain.value_objects.enums import ChannelAction, PresenceStatus
from marketplace_chat.infrastructure.ws.manager import Subscriber, TopicRegistry, Transport
from marketplace_chat.infrastructure.ws.protocol import WsOutbound
from marketplace_chat.services import message_service

logger = logging.getLogger(__name__)


class _ConversationLocks:
    """One asyncio.Lock per conversation, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._users: dict[UUID, int] = {}

    @asynccontextmanager
    async def hold(self, conversation_id: UUID) -> AsyncIterator[None]:
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._users[conversation_id] = self._users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[conversation_id] -= 1
            if self._users[conversation_id] == 0:
                del self._users[conversation_id]
                del self._locks[conversation_id]

    def __len__(self) -> int:
        return len(self._locks)


class MessagesChannel:
    def __init__(
        self,
        registry: TopicRegistry,
        uow_factory: UoWFactory,
        renderer: FragmentRenderer,
        *,
        clock: Clock | None = None,
        max_length: int = DEFAULT_MAX_CONTENT_LENGTH,
    ) -> None:
        self._registry = registry
        self._uow_factory = uow_factory
        self._renderer = renderer
        self._clock = clock or SystemClock()
        self._max_length = max_length
        self._locks = _ConversationLocks()

    @property
    def registry(self) -> TopicRegistry:
        return self._registry

    async def subscribe(
        self,
        session_id: str,
        user_id: int,
        conversation_id: UUID,
        transport: Transport,
    ) -> Subscriber | None:
        """Register the session on the conversation topic, or None if rejected."""
        async with self._uow_factory() as uow:
            conversation = await uow.conversations.get_by_id(conversation_id)
        if not can_subscribe(user_id, conversation):
            logger.info(
                "Rejected subscription user=%s conversation=%s", user_id, conversation_id,
            )
            return None

        existing = self._registry.get(session_id, conversation_id)
        if existing is not None:
            return existing
        subscriber = Subscriber(
            session_id=session_id,
            user_id=user_id,
            conversation_id=conversation_id,
            transport=transport,
        )
        self._registry.add(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self._registry.remove(subscriber.session_id, subscriber.conversation_id)

    def disconnect(self, session_id: str) -> int:
        removed = self._registry.remove_session(session_id)
        return len(removed)

    async def perform(
        self,
        subscriber: Subscriber,
        action: str,
        data: dict[str, Any],
    ) -> None:
        if self._registry.get(subscriber.session_id, subscriber.conversation_id) is not subscriber:
            logger.debug("Action %s from unsubscribed session %s", action, subscriber.session_id)
            return
        try:
            parsed = ChannelAction(action)
        except ValueError:
            logger.info("Ignoring unknown channel action %r", action)
            return

        async with self._uow_factory() as uow:
            conversation = await uow.conversations.get_by_id(subscriber.conversation_id)
            if conversation is None or not can_post(subscriber.user_id, conversation):
                logger.info(
                    "Dropped %s by user=%s on conversation=%s: not a participant",
                    parsed, subscriber.user_id, subscriber.conversation_id,
                )
                return

            match parsed:
                case ChannelAction.SPEAK:
                    await self._speak(subscriber, conversation, data, uow)
                case ChannelAction.TYPING:
                    await self._typing(subscriber, conversation, data, uow)
                case ChannelAction.MARK_AS_READ:
                    await self._mark_as_read(subscriber, conversation, data, uow)
                case ChannelAction.UPDATE_PRESENCE:
                    await self._update_presence(subscriber, conversation, data, uow)
                case _:
                    assert_never(parsed)

    async def _sender_name(self, user_id: int, uow: UnitOfWork) -> str:
        return display_name_for(await uow.users.get_by_id(user_id), user_id)

    async def publish(
        self,
        conversation: Conversation,
        sender_id: int,
        new: NewMessageDTO,
        uow: UnitOfWork,
    ) -> Message:
        """Persist a message and broadcast it to the conversation topic.

        Used by speak and by the REST endpoints alike, so every new message
        goes through the conversation lock and topic order matches persisted
        order. The caller has already checked membership; ValidationError
        propagates.
        """
        sender_name = await self._sender_name(sender_id, uow)
        async with self._locks.hold(conversation.id):
            message = await message_service.create_message(
                conversation, sender_id, new, uow,
                now=self._clock.now(), max_length=self._max_length,
            )
            html = attempt(
                "Fragment rendering",
                lambda: self._renderer.render(
                    message, sender_name=sender_name, viewer_id=sender_id,
                ),
                default="",
            ).value
            view = MessageView.from_message(message, sender_name)
            await self._registry.broadcast(
                conversation.id, message_created_event(view, html),
            )
        return message

    async def _speak(
        self,
        subscriber: Subscriber,
        conversation: Conversation,
        data: dict[str, Any],
        uow: UnitOfWork,
    ) -> None:
        try:
            new = NewMessageDTO(
                content=data.get("content"),
                type=message_service.parse_message_type(data.get("message_type")),
            )
            await self.publish(conversation, subscriber.user_id, new, uow)
        except ValidationError as exc:
            await subscriber.transmit(
                WsOutbound(
                    type="event",
                    conversation_id=conversation.id,
                    data={"action": "message_error", "errors": exc.errors},
                )
            )

    async def _typing(
        self,
        subscriber: Subscriber,
        conversation: Conversation,
        data: dict[str, Any],
        uow: UnitOfWork,
    ) -> None:
        event = {
            "action": "user_typing",
            "user_id": subscriber.user_id,
            "user_name": await self._sender_name(subscriber.user_id, uow),
            "typing": data.get("typing") is True,
        }
        await self._registry.broadcast(
            conversation.id, event, exclude_user_id=subscriber.user_id,
        )

    async def _mark_as_read(
        self,
        subscriber: Subscriber,
        conversation: Conversation,
        data: dict[str, Any],
        uow: UnitOfWork,
    ) -> None:
        raw_id = data.get("message_id")
        now = self._clock.now()
        async with self._locks.hold(conversation.id):
            if raw_id:
                try:
                    message_id = UUID(str(raw_id))
                except ValueError:
                    return
                message = await message_service.mark_message_read(
                    conversation, message_id, subscriber.user_id, uow, now=now,
                )
                if message is None:
                    return
                event = {
                    "action": "message_read",
                    "message_id": str(message.id),
                    "reader_id": subscriber.user_id,
                    "read_at": iso8601(message.read_at),
                }
            else:
                await message_service.mark_conversation_read(
                    conversation, subscriber.user_id, uow, now=now,
                )
                event = {
                    "action": "conversation_read",
                    "reader_id": subscriber.user_id,
                    "read_at": iso8601(now),
                }
            await self._registry.broadcast(conversation.id, event)

    async def _update_presence(
        self,
        subscriber: Subscriber,
        conversation: Conversation,
        data: dict[str, Any],
        uow: UnitOfWork,
    ) -> None:
        try:
            status = PresenceStatus(data.get("status"))
        except ValueError:
            logger.debug("Ignoring presence status %r", data.get("status"))
            return
        event = {
            "action": "user_presence",
            "user_id": subscriber.user_id,
            "user_name": await self._sender_name(subscriber.user_id, uow),
            "status": status.value,
        }
        await self._registry.broadcast(
            conversation.id, event, exclude_user_id=subscriber.user_id,
        )
