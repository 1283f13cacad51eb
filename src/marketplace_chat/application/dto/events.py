from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class DispatchReport:
    """What the notification dispatcher did for one message."""

    message_id: str
    skipped: bool = False
    email_sent: bool = False
    push_sent: bool = False
    rebroadcast: bool = False
    errors: dict[str, str] = field(default_factory=dict)
