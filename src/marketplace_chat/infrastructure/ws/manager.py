"""In-process registry of conversation topics and their subscribed sessions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol
from uuid import UUID

from marketplace_chat.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def send_text(self, data: str) -> None: ...


@dataclass(eq=False, slots=True)
class Subscriber:
    """One session subscribed to one conversation topic."""

    session_id: str
    user_id: int
    conversation_id: UUID
    transport: Transport

    async def transmit(self, message: WsOutbound) -> None:
        """Send to this session only."""
        await self.transport.send_text(message.model_dump_json())


class TopicRegistry:
    """Tracks subscribers per conversation topic and fans events out to them.

    Mutations never await, so the topic maps are consistent between any two
    suspension points; broadcasts iterate over a snapshot.
    """

    def __init__(self) -> None:
        self._topics: dict[UUID, dict[str, Subscriber]] = {}
        self._sessions: dict[str, set[UUID]] = {}

    def add(self, subscriber: Subscriber) -> None:
        topic = self._topics.setdefault(subscriber.conversation_id, {})
        topic[subscriber.session_id] = subscriber
        self._sessions.setdefault(subscriber.session_id, set()).add(subscriber.conversation_id)
        logger.debug(
            "Subscribed session=%s user=%s conversation=%s (topic size=%d)",
            subscriber.session_id, subscriber.user_id, subscriber.conversation_id, len(topic),
        )

    def get(self, session_id: str, conversation_id: UUID) -> Subscriber | None:
        return self._topics.get(conversation_id, {}).get(session_id)

    def remove(self, session_id: str, conversation_id: UUID) -> Subscriber | None:
        topic = self._topics.get(conversation_id)
        if not topic:
            return None
        subscriber = topic.pop(session_id, None)
        if not topic:
            del self._topics[conversation_id]
        conversations = self._sessions.get(session_id)
        if conversations is not None:
            conversations.discard(conversation_id)
            if not conversations:
                del self._sessions[session_id]
        return subscriber

    def remove_session(self, session_id: str) -> list[Subscriber]:
        removed: list[Subscriber] = []
        for conversation_id in list(self._sessions.get(session_id, ())):
            subscriber = self.remove(session_id, conversation_id)
            if subscriber is not None:
                removed.append(subscriber)
        return removed

    def subscribers(self, conversation_id: UUID) -> list[Subscriber]:
        return list(self._topics.get(conversation_id, {}).values())

    def topic_count(self) -> int:
        return len(self._topics)

    async def broadcast(
        self,
        conversation_id: UUID,
        event: dict[str, Any],
        *,
        exclude_user_id: int | None = None,
    ) -> int:
        """Send an event to every subscriber of a conversation topic.

        The envelope is serialized once. Sessions whose transport fails are
        dropped from the registry.
        """
        raw = WsOutbound(type="event", conversation_id=conversation_id, data=event).model_dump_json()
        delivered = 0
        dead: list[Subscriber] = []
        for subscriber in self.subscribers(conversation_id):
            if exclude_user_id is not None and subscriber.user_id == exclude_user_id:
                continue
            try:
                await subscriber.transport.send_text(raw)
                delivered += 1
            except Exception:
                logger.debug("Dropping dead session %s", subscriber.session_id, exc_info=True)
                dead.append(subscriber)
        for subscriber in dead:
            self.remove(subscriber.session_id, subscriber.conversation_id)
        return delivered
