from __future__ import annotations

from typing import Protocol

from marketplace_chat.domain.entities.message import Message


class FragmentRenderer(Protocol):
    """Renders a message into a display fragment for direct UI insertion."""

    def render(self, message: Message, *, sender_name: str, viewer_id: int) -> str: ...
