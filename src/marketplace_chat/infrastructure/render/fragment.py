"""HTML fragment for a single chat message, inserted directly by the web UI."""
from __future__ import annotations

from html import escape

from marketplace_chat.application.dto.message import iso8601
from marketplace_chat.domain.entities.message import Message


class HtmlFragmentRenderer:
    def render(self, message: Message, *, sender_name: str, viewer_id: int) -> str:
        own = message.sender_id == viewer_id
        side = "message--outgoing" if own else "message--incoming"
        timestamp = iso8601(message.created_at) or ""
        body = escape(message.content).replace("\n", "<br>")
        return (
            f'<div class="message {side} message--{escape(str(message.type))}" '
            f'id="message_{message.id}" data-message-id="{message.id}" '
            f'data-sender-id="{message.sender_id}">'
            f'<div class="message__author">{escape(sender_name)}</div>'
            f'<div class="message__body">{body}</div>'
            f'<time class="message__time" datetime="{timestamp}">{timestamp}</time>'
            f"</div>"
        )
