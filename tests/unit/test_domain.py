from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from marketplace_chat.application.dto.message import MessageView, iso8601
from marketplace_chat.application.outcome import attempt, attempt_async
from marketplace_chat.application.policies.notifications import NotificationPolicy
from marketplace_chat.application.policies.permissions import can_post, can_subscribe
from marketplace_chat.domain.entities.message import validate_new_message
from marketplace_chat.domain.entities.user import display_name_for
from marketplace_chat.domain.events.message_created import MessageCreated
from marketplace_chat.domain.value_objects.enums import MessageStatus, MessageType
from tests.conftest import ALICE, BOB, MALLORY, make_conversation, make_message, make_user


def test_only_system_messages_skip_notification():
    quiet = {t for t in MessageType if not t.notifies_recipient}
    assert quiet == {MessageType.SYSTEM_MESSAGE}


def test_gate_admits_only_participants():
    conv = make_conversation()

    assert can_subscribe(ALICE, conv) and can_post(BOB, conv)
    assert not can_subscribe(MALLORY, conv)
    assert not can_post(MALLORY, conv)
    assert not can_subscribe(ALICE, None)


def test_validation_collects_every_error():
    conv = make_conversation()

    errors = validate_new_message(conv, MALLORY, MALLORY, "", max_length=10)

    assert errors == [
        "Content can't be blank",
        "Recipient can't send message to yourself",
        "Sender must be part of the conversation",
        "Recipient must be part of the conversation",
    ]


def test_validation_accepts_content_at_the_limit():
    conv = make_conversation()

    assert validate_new_message(conv, ALICE, BOB, "x" * 10, max_length=10) == []


@pytest.mark.parametrize(
    "user, expected",
    [
        (make_user(7, first_name="Dana", email="dana.k@example.com"), "Dana"),
        (make_user(7, email="dana.k@example.com"), "dana.k"),
        (None, "User 7"),
    ],
)
def test_display_name_fallbacks(user, expected):
    assert display_name_for(user, 7) == expected


def test_full_name_prefers_first_and_last():
    assert make_user(1, first_name="Dana", last_name="Kay").full_name == "Dana Kay"
    assert make_user(1, email="x@example.com").full_name == "x"


def test_iso8601_normalizes_to_utc():
    plus_two = timezone(timedelta(hours=2))

    assert iso8601(datetime(2025, 3, 1, 14, 30, 5, 123, tzinfo=plus_two)) == "2025-03-01T12:30:05Z"
    assert iso8601(datetime(2025, 3, 1, 12, 0)) == "2025-03-01T12:00:00Z"
    assert iso8601(None) is None


def test_message_view_fields():
    conv = make_conversation()
    msg = make_message(conv, sender_id=BOB, content="hey", type=MessageType.BOOKING_REQUEST)

    view = MessageView.from_message(msg, "bob").as_dict()

    assert set(view) == {
        "id", "content", "sender_id", "recipient_id", "message_type",
        "status", "created_at", "sender_name",
    }
    assert view["message_type"] == "booking_request"
    assert view["recipient_id"] == ALICE


def test_message_created_payload_round_trips_through_json_types():
    fact = MessageCreated.from_payload({"message_id": "6f1c2f7e-0b1f-4a53-9a55-3d0f5b3b9b10",
                                        "conversation_id": "0c9a7f55-0d88-45a0-9d3a-2ad3a1e0a1d2"})

    assert fact.to_payload()["message_id"] == "6f1c2f7e-0b1f-4a53-9a55-3d0f5b3b9b10"


def test_notification_policy_requires_confirmation():
    policy = NotificationPolicy()

    assert policy.should_send_email(make_user(1))
    assert not policy.should_send_email(make_user(1, confirmed=False))
    assert not policy.should_send_push(make_user(1))
    assert NotificationPolicy(push_enabled=True).should_send_push(make_user(1))


def test_attempt_recovers_with_default():
    def boom() -> str:
        raise ValueError("nope")

    outcome = attempt("render", boom, default="")

    assert outcome.value == ""
    assert not outcome.ok
    assert isinstance(outcome.error, ValueError)
    assert attempt("render", lambda: "<p/>", default="").value == "<p/>"


@pytest.mark.asyncio
async def test_attempt_async_recovers_with_default():
    async def boom() -> int:
        raise ConnectionError("down")

    outcome = await attempt_async("send", boom, default=0)

    assert outcome.value == 0
    assert isinstance(outcome.error, ConnectionError)


@pytest.mark.parametrize(
    ("status", "unread", "read", "deleted"),
    [
        (MessageStatus.UNREAD, True, False, False),
        (MessageStatus.READ, False, True, False),
        (MessageStatus.ARCHIVED, False, False, False),
        (MessageStatus.DELETED, False, False, True),
    ],
)
def test_message_status_predicates(status, unread, read, deleted):
    msg = make_message(make_conversation(), status=status)

    assert (msg.is_unread, msg.is_read, msg.is_deleted) == (unread, read, deleted)
