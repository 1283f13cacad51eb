from __future__ import annotations

import json
import uuid

import pytest

from marketplace_chat.infrastructure.ws.manager import Subscriber, TopicRegistry
from tests.conftest import ALICE, BOB, FakeSocket


def _sub(session_id: str, user_id: int, conversation_id: uuid.UUID) -> Subscriber:
    return Subscriber(session_id, user_id, conversation_id, FakeSocket())


def test_registries_are_isolated():
    conv = uuid.uuid4()
    first, second = TopicRegistry(), TopicRegistry()

    first.add(_sub("s1", ALICE, conv))

    assert second.subscribers(conv) == []
    assert second.topic_count() == 0


def test_remove_cleans_up_empty_topics_and_sessions():
    conv = uuid.uuid4()
    registry = TopicRegistry()
    sub = _sub("s1", ALICE, conv)
    registry.add(sub)

    assert registry.remove("s1", conv) is sub
    assert registry.remove("s1", conv) is None
    assert registry.topic_count() == 0
    assert registry.remove_session("s1") == []


@pytest.mark.asyncio
async def test_broadcast_serializes_one_envelope_for_every_subscriber():
    conv = uuid.uuid4()
    registry = TopicRegistry()
    subs = [_sub("a", ALICE, conv), _sub("b1", BOB, conv), _sub("b2", BOB, conv)]
    for s in subs:
        registry.add(s)

    delivered = await registry.broadcast(conv, {"action": "ping"})

    assert delivered == 3
    frames = [s.transport.sent[0] for s in subs]
    assert len(set(frames)) == 1
    assert json.loads(frames[0]) == {
        "type": "event",
        "conversation_id": str(conv),
        "data": {"action": "ping"},
    }


@pytest.mark.asyncio
async def test_broadcast_excludes_all_sessions_of_a_user():
    conv = uuid.uuid4()
    registry = TopicRegistry()
    alice = _sub("a", ALICE, conv)
    bob1, bob2 = _sub("b1", BOB, conv), _sub("b2", BOB, conv)
    for s in (alice, bob1, bob2):
        registry.add(s)

    delivered = await registry.broadcast(conv, {"action": "user_typing"}, exclude_user_id=BOB)

    assert delivered == 1
    assert len(alice.transport.sent) == 1
    assert bob1.transport.sent == bob2.transport.sent == []


@pytest.mark.asyncio
async def test_broadcast_only_reaches_its_topic():
    conv, other = uuid.uuid4(), uuid.uuid4()
    registry = TopicRegistry()
    here, there = _sub("a", ALICE, conv), _sub("b", BOB, other)
    registry.add(here)
    registry.add(there)

    await registry.broadcast(conv, {"action": "x"})

    assert there.transport.sent == []


@pytest.mark.asyncio
async def test_subscriber_added_during_broadcast_does_not_break_it():
    conv = uuid.uuid4()
    registry = TopicRegistry()
    late = _sub("late", BOB, conv)

    class JoiningSocket(FakeSocket):
        async def send_text(self, data: str) -> None:
            registry.add(late)
            await super().send_text(data)

    registry.add(Subscriber("a", ALICE, conv, JoiningSocket()))

    assert await registry.broadcast(conv, {"action": "x"}) == 1
    assert registry.get("late", conv) is late
