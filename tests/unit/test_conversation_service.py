from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from marketplace_chat.application.exceptions import NotFoundError, ValidationError
from marketplace_chat.domain.value_objects.enums import MessageStatus
from marketplace_chat.services import conversation_service
from tests.conftest import (
    ALICE,
    BOB,
    MALLORY,
    T0,
    FakeUoW,
    make_conversation,
    make_message,
    make_user,
)


@pytest.mark.asyncio
async def test_find_or_create_creates_ordered_pair():
    uow = FakeUoW()

    conv, created = await conversation_service.find_or_create_between(BOB, ALICE, uow, now=T0)

    assert created is True
    assert (conv.participant1_id, conv.participant2_id) == (ALICE, BOB)
    assert uow._committed is True


@pytest.mark.asyncio
async def test_find_or_create_is_order_independent():
    uow = FakeUoW()

    first, _ = await conversation_service.find_or_create_between(ALICE, BOB, uow)
    second, created = await conversation_service.find_or_create_between(BOB, ALICE, uow)

    assert created is False
    assert second.id == first.id
    assert len(uow.conversations._store) == 1


@pytest.mark.asyncio
async def test_find_or_create_rejects_self_conversation():
    with pytest.raises(ValidationError):
        await conversation_service.find_or_create_between(ALICE, ALICE, FakeUoW())


@pytest.mark.asyncio
async def test_find_or_create_recovers_from_concurrent_insert():
    uow = FakeUoW()
    winner = make_conversation()
    real_get_between = uow.conversations.get_between
    calls = 0

    async def racing_get_between(a: int, b: int):
        nonlocal calls
        calls += 1
        if calls == 1:
            # Another request inserts between our lookup and our insert.
            uow.add_conversation(winner)
            return None
        return await real_get_between(a, b)

    uow.conversations.get_between = racing_get_between  # type: ignore[method-assign]

    conv, created = await conversation_service.find_or_create_between(ALICE, BOB, uow)

    assert created is False
    assert conv.id == winner.id
    assert uow.rollbacks == 1


@pytest.mark.asyncio
async def test_open_conversation_requires_existing_recipient(alice):
    with pytest.raises(NotFoundError):
        await conversation_service.open_conversation(alice, 999, FakeUoW())


@pytest.mark.asyncio
async def test_open_conversation_resumes_existing_pair(alice):
    uow = FakeUoW()
    uow.users.add(make_user(BOB))
    existing = uow.add_conversation(make_conversation())

    conv = await conversation_service.open_conversation(alice, BOB, uow)

    assert conv.id == existing.id
    assert uow.messages._messages == []


@pytest.mark.asyncio
async def test_list_user_conversations_reports_unread_and_other_participant(alice):
    uow = FakeUoW()
    with_bob = uow.add_conversation(make_conversation())
    with_mallory = uow.add_conversation(make_conversation(participants=(MALLORY, ALICE)))
    uow.add_conversation(make_conversation(participants=(BOB, MALLORY)))
    uow.add_conversation(make_conversation(participants=(ALICE, 4), archived=True))
    uow.add_message(make_message(with_bob, sender_id=BOB))
    uow.add_message(make_message(with_bob, sender_id=BOB))
    uow.add_message(make_message(with_bob, sender_id=ALICE))

    summaries = await conversation_service.list_user_conversations(alice, False, 20, uow)

    by_id = {s.conversation.id: s for s in summaries}
    assert set(by_id) == {with_bob.id, with_mallory.id}
    assert by_id[with_bob.id].unread_count == 2
    assert by_id[with_bob.id].other_participant_id == BOB
    assert by_id[with_mallory.id].other_participant_id == MALLORY


@pytest.mark.asyncio
async def test_get_conversation_marks_read_for_viewer(alice):
    uow = FakeUoW()
    conv = uow.add_conversation(make_conversation())
    incoming = uow.add_message(make_message(conv, sender_id=BOB))
    outgoing = uow.add_message(make_message(conv, sender_id=ALICE))

    summary = await conversation_service.get_conversation(conv.id, alice, uow, now=T0)

    assert summary.unread_count == 0
    assert (await uow.messages.get_by_id(incoming.id)).status == MessageStatus.READ
    assert (await uow.messages.get_by_id(outgoing.id)).status == MessageStatus.UNREAD


@pytest.mark.asyncio
async def test_get_conversation_hides_existence_from_outsiders(mallory):
    uow = FakeUoW()
    conv = uow.add_conversation(make_conversation())

    with pytest.raises(NotFoundError):
        await conversation_service.get_conversation(conv.id, mallory, uow)
    with pytest.raises(NotFoundError):
        await conversation_service.get_conversation(uuid.uuid4(), mallory, uow)


@pytest.mark.asyncio
async def test_archive_and_unarchive(bob):
    uow = FakeUoW()
    conv = uow.add_conversation(make_conversation())
    later = T0 + timedelta(days=1)

    archived = await conversation_service.set_archived(conv.id, bob, True, uow, now=later)
    assert archived.archived is True
    assert archived.archived_at == later

    restored = await conversation_service.set_archived(conv.id, bob, False, uow)
    assert restored.archived is False
    assert restored.archived_at is None
