from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Conversation:
    """A thread between exactly two users.

    Participants are stored ordered (``participant1_id < participant2_id``) so
    the pair is unique regardless of who opened the conversation.
    """

    id: UUID
    participant1_id: int
    participant2_id: int
    last_message_at: datetime | None
    archived: bool
    archived_at: datetime | None
    created_at: datetime
    updated_at: datetime

    def has_participant(self, user_id: int | None) -> bool:
        if user_id is None:
            return False
        return user_id in (self.participant1_id, self.participant2_id)

    def other_participant(self, user_id: int) -> int:
        return self.participant2_id if user_id == self.participant1_id else self.participant1_id


def ordered_pair(user_a: int, user_b: int) -> tuple[int, int]:
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)
