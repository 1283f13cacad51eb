from __future__ import annotations

from marketplace_chat.infrastructure.render.fragment import HtmlFragmentRenderer
from tests.conftest import ALICE, BOB, make_conversation, make_message


def test_fragment_escapes_content_and_sender():
    msg = make_message(make_conversation(), sender_id=ALICE, content="<script>x</script>\nbye")

    html = HtmlFragmentRenderer().render(msg, sender_name="A & B", viewer_id=BOB)

    assert "<script>" not in html
    assert "&lt;script&gt;x&lt;/script&gt;<br>bye" in html
    assert "A &amp; B" in html
    assert f'id="message_{msg.id}"' in html
    assert "message--incoming" in html


def test_fragment_marks_own_messages_outgoing():
    msg = make_message(make_conversation(), sender_id=ALICE)

    html = HtmlFragmentRenderer().render(msg, sender_name="Alice", viewer_id=ALICE)

    assert "message--outgoing" in html
    assert 'datetime="2025-01-01T12:00:00Z"' in html
