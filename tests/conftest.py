"""Shared test fixtures."""
from __future__ import annotations

import json
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator
from uuid import UUID

import pytest

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import ConflictError
from marketplace_chat.application.repositories.outbox import OutboxRecord
from marketplace_chat.domain.entities.conversation import Conversation, ordered_pair
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.entities.user import User
from marketplace_chat.domain.value_objects.enums import MessageStatus, MessageType, OutboxStatus

ALICE = 1
BOB = 2
MALLORY = 3

T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def alice() -> Principal:
    return Principal(user_id=ALICE)


@pytest.fixture
def bob() -> Principal:
    return Principal(user_id=BOB)


@pytest.fixture
def mallory() -> Principal:
    return Principal(user_id=MALLORY)


def make_conversation(
    *,
    conversation_id: UUID | None = None,
    participants: tuple[int, int] = (ALICE, BOB),
    archived: bool = False,
) -> Conversation:
    first, second = ordered_pair(*participants)
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        participant1_id=first,
        participant2_id=second,
        last_message_at=None,
        archived=archived,
        archived_at=None,
        created_at=T0,
        updated_at=T0,
    )


def make_message(
    conversation: Conversation,
    *,
    sender_id: int = ALICE,
    content: str = "hello",
    type: str = MessageType.TEXT,
    status: str = MessageStatus.UNREAD,
    read_at: datetime | None = None,
    created_at: datetime = T0,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        conversation_id=conversation.id,
        sender_id=sender_id,
        recipient_id=conversation.other_participant(sender_id),
        content=content,
        type=type,
        status=status,
        read_at=read_at,
        regarding_type=None,
        regarding_id=None,
        metadata=None,
        created_at=created_at,
        updated_at=created_at,
    )


def make_user(
    user_id: int,
    *,
    email: str | None = None,
    confirmed: bool = True,
    first_name: str | None = None,
    last_name: str | None = None,
) -> User:
    return User(
        id=user_id,
        email=email or f"user{user_id}@example.com",
        confirmed_at=T0 if confirmed else None,
        first_name=first_name,
        last_name=last_name,
    )


@dataclass
class FakeConversationReader:
    _store: dict[UUID, Conversation] = field(default_factory=dict)

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.get(conversation_id)

    async def get_between(self, user_a: int, user_b: int) -> Conversation | None:
        pair = ordered_pair(user_a, user_b)
        for c in self._store.values():
            if (c.participant1_id, c.participant2_id) == pair:
                return c
        return None

    async def list_for_user(
        self, user_id: int, *, archived: bool = False, limit: int = 20,
    ) -> list[Conversation]:
        convs = [
            c for c in self._store.values()
            if c.has_participant(user_id) and c.archived == archived
        ]
        convs.sort(key=lambda c: c.last_message_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return convs[:limit]


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader

    async def create(self, conversation: Conversation) -> Conversation:
        if await self._reader.get_between(conversation.participant1_id, conversation.participant2_id):
            raise ConflictError("Conversation already exists")
        self._reader._store[conversation.id] = conversation
        return conversation

    async def touch_last_message_at(self, conversation_id: UUID, ts: datetime) -> None:
        conv = self._reader._store[conversation_id]
        self._reader._store[conversation_id] = replace(conv, last_message_at=ts)

    async def set_archived(self, conversation_id: UUID, archived: bool, ts: datetime | None) -> None:
        conv = self._reader._store[conversation_id]
        self._reader._store[conversation_id] = replace(
            conv, archived=archived, archived_at=ts if archived else None,
        )


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    async def get_by_id(self, message_id: UUID) -> Message | None:
        return next((m for m in self._messages if m.id == message_id), None)

    async def get_in_conversation(self, conversation_id: UUID, message_id: UUID) -> Message | None:
        msg = await self.get_by_id(message_id)
        return msg if msg is not None and msg.conversation_id == conversation_id else None

    async def list_messages(
        self, conversation_id: UUID, *, cursor: str | None = None, limit: int = 50,
    ) -> list[Message]:
        return [
            m for m in self._messages
            if m.conversation_id == conversation_id and m.status != MessageStatus.DELETED
        ][:limit]

    async def count_unread_for(self, conversation_id: UUID, user_id: int) -> int:
        return sum(
            1 for m in self._messages
            if m.conversation_id == conversation_id
            and m.recipient_id == user_id
            and m.status == MessageStatus.UNREAD
        )


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

    def _replace(self, message_id: UUID, **changes: Any) -> Message:
        for i, m in enumerate(self._reader._messages):
            if m.id == message_id:
                self._reader._messages[i] = replace(m, **changes)
                return self._reader._messages[i]
        raise KeyError(message_id)

    async def create(self, message: Message) -> Message:
        self._reader._messages.append(message)
        return message

    async def mark_read(self, message_id: UUID, recipient_id: int, ts: datetime) -> Message | None:
        msg = await self._reader.get_by_id(message_id)
        if msg is None or msg.recipient_id != recipient_id or msg.is_read or msg.is_deleted:
            return None
        return self._replace(message_id, status=MessageStatus.READ.value, read_at=msg.read_at or ts)

    async def mark_all_read_for(self, conversation_id: UUID, recipient_id: int, ts: datetime) -> int:
        targets = [
            m.id for m in self._reader._messages
            if m.conversation_id == conversation_id
            and m.recipient_id == recipient_id
            and m.status == MessageStatus.UNREAD
        ]
        for mid in targets:
            self._replace(mid, status=MessageStatus.READ.value, read_at=ts)
        return len(targets)

    async def set_status(self, message_id: UUID, status: str) -> Message | None:
        if await self._reader.get_by_id(message_id) is None:
            return None
        return self._replace(message_id, status=status)


@dataclass
class FakeUserReader:
    _users: dict[int, User] = field(default_factory=dict)

    async def get_by_id(self, user_id: int) -> User | None:
        return self._users.get(user_id)

    def add(self, *users: User) -> None:
        for u in users:
            self._users[u.id] = u


@dataclass
class FakeOutboxRow:
    id: int
    event_type: str
    payload: dict[str, Any]
    status: str = OutboxStatus.PENDING
    attempts: int = 0
    next_retry_at: datetime | None = None
    last_error: str | None = None
    claimed_at: datetime | None = None


@dataclass
class FakeOutboxWriter:
    """Failed rows are immediately eligible again; claims expire on wall-clock time."""

    _records: list[FakeOutboxRow] = field(default_factory=list)

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._records.append(FakeOutboxRow(len(self._records) + 1, event_type, payload))

    def row(self, record_id: int) -> FakeOutboxRow:
        return next(r for r in self._records if r.id == record_id)

    async def fetch_pending(self, batch_size: int, lease_seconds: int) -> list[OutboxRecord]:
        now = datetime.now(timezone.utc)
        stale_before = now - timedelta(seconds=lease_seconds)
        rows = [
            r for r in self._records
            if r.status in (OutboxStatus.PENDING, OutboxStatus.FAILED)
            or (r.status == OutboxStatus.PROCESSING and r.claimed_at <= stale_before)
        ][:batch_size]
        for r in rows:
            r.status, r.claimed_at = OutboxStatus.PROCESSING, now
        return [OutboxRecord(r.id, r.event_type, r.payload, r.attempts) for r in rows]

    async def mark_sent(self, ids: list[int]) -> None:
        for rid in ids:
            self.row(rid).status = OutboxStatus.SENT

    async def mark_failed(self, record_id: int, next_retry_at: datetime, error: str) -> None:
        r = self.row(record_id)
        r.status, r.attempts, r.next_retry_at, r.last_error = (
            OutboxStatus.FAILED, r.attempts + 1, next_retry_at, error,
        )

    async def mark_dead(self, record_id: int, error: str) -> None:
        r = self.row(record_id)
        r.status, r.attempts, r.next_retry_at, r.last_error = (
            OutboxStatus.DEAD, r.attempts + 1, None, error,
        )

    async def mark_discarded(self, record_id: int, reason: str) -> None:
        r = self.row(record_id)
        r.status, r.next_retry_at, r.last_error = OutboxStatus.DISCARDED, None, reason


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    conversations: FakeConversationReader = field(default_factory=FakeConversationReader)
    conversations_w: FakeConversationWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    users: FakeUserReader = field(default_factory=FakeUserReader)
    outbox: FakeOutboxWriter = field(default_factory=FakeOutboxWriter)
    _committed: bool = False
    commits: int = 0
    rollbacks: int = 0

    def __post_init__(self) -> None:
        if self.conversations_w is None:
            self.conversations_w = FakeConversationWriter(self.conversations)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

    async def __aenter__(self) -> FakeUoW:
        return self

    async def __aexit__(self, *exc: object) -> None:
        pass

    def add_conversation(self, conversation: Conversation) -> Conversation:
        self.conversations._store[conversation.id] = conversation
        return conversation

    def add_message(self, message: Message) -> Message:
        self.messages._messages.append(message)
        return message


def fake_uow_factory(uow: FakeUoW):
    """UoWFactory that hands out the same in-memory store on every call."""

    @asynccontextmanager
    async def _factory() -> AsyncIterator[FakeUoW]:
        yield uow

    return _factory


class FakeSocket:
    """Transport that records every frame sent to it."""

    def __init__(self, *, broken: bool = False) -> None:
        self.sent: list[str] = []
        self.broken = broken

    async def send_text(self, data: str) -> None:
        if self.broken:
            raise ConnectionError("socket closed")
        self.sent.append(data)

    def frames(self) -> list[dict[str, Any]]:
        return [json.loads(s) for s in self.sent]

    def events(self, action: str | None = None) -> list[dict[str, Any]]:
        out = [f["data"] for f in self.frames() if f["type"] == "event"]
        if action is not None:
            out = [e for e in out if e.get("action") == action]
        return out


class FakeRenderer:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[UUID, str, int]] = []

    def render(self, message: Message, *, sender_name: str, viewer_id: int) -> str:
        self.calls.append((message.id, sender_name, viewer_id))
        if self.fail:
            raise RuntimeError("template exploded")
        return f"<p>{message.content}</p>"


class FakeMailer:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[tuple[Message, User | None, User]] = []

    async def send_new_message_notification(
        self, message: Message, sender: User | None, recipient: User,
    ) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((message, sender, recipient))


class FakePush:
    def __init__(self) -> None:
        self.sent: list[tuple[Message, User]] = []

    async def send_new_message(self, message: Message, recipient: User) -> None:
        self.sent.append((message, recipient))


class FakeBroadcaster:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[UUID, dict[str, Any], int | None]] = []

    async def broadcast(
        self, conversation_id: UUID, event: dict[str, Any], *, exclude_user_id: int | None = None,
    ) -> int:
        if self.error is not None:
            raise self.error
        self.calls.append((conversation_id, event, exclude_user_id))
        return 1
