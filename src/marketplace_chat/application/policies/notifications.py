from __future__ import annotations

from dataclasses import dataclass

from marketplace_chat.domain.entities.user import User


@dataclass(frozen=True, slots=True)
class NotificationPolicy:
    """Which out-of-band notifications a recipient gets for a new message.

    Per-user preferences are not modelled; the flags apply to every
    confirmed recipient.
    """

    email_enabled: bool = True
    push_enabled: bool = False

    def should_send_email(self, recipient: User) -> bool:
        return recipient.is_confirmed and self.email_enabled

    def should_send_push(self, recipient: User) -> bool:
        return recipient.is_confirmed and self.push_enabled
