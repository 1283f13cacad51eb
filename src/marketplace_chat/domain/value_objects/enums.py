from __future__ import annotations

from enum import StrEnum
from typing import assert_never


class MessageType(StrEnum):
    TEXT = "text"
    BOOKING_REQUEST = "booking_request"
    BOOKING_CONFIRMATION = "booking_confirmation"
    BOOKING_CANCELLATION = "booking_cancellation"
    PAYMENT_NOTIFICATION = "payment_notification"
    SYSTEM_MESSAGE = "system_message"

    @property
    def notifies_recipient(self) -> bool:
        """Whether a new message of this kind triggers email/push notification."""
        match self:
            case (
                MessageType.TEXT
                | MessageType.BOOKING_REQUEST
                | MessageType.BOOKING_CONFIRMATION
                | MessageType.BOOKING_CANCELLATION
                | MessageType.PAYMENT_NOTIFICATION
            ):
                return True
            case MessageType.SYSTEM_MESSAGE:
                return False
            case _:
                assert_never(self)


class MessageStatus(StrEnum):
    UNREAD = "unread"
    READ = "read"
    ARCHIVED = "archived"
    DELETED = "deleted"


class PresenceStatus(StrEnum):
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"


class ChannelAction(StrEnum):
    SPEAK = "speak"
    TYPING = "typing"
    MARK_AS_READ = "mark_as_read"
    UPDATE_PRESENCE = "update_presence"


class OutboxStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    DEAD = "dead"
    DISCARDED = "discarded"
