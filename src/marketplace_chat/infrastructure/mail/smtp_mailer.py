"""New-message notification email over SMTP."""
from __future__ import annotations

import logging
from email.message import EmailMessage
from html import escape

import aiosmtplib

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.entities.user import User

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


class SmtpMailSender:
    """Implements application.ports.mailer.MailSender.

    Delivery errors propagate; callers decide whether they are fatal.
    """

    def __init__(
        self,
        *,
        host: str | None,
        port: int,
        username: str | None,
        password: str | None,
        tls: bool,
        from_address: str,
        base_url: str,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._tls = tls
        self._from = from_address
        self._base_url = base_url.rstrip("/")

    async def send_new_message_notification(
        self, message: Message, sender: User | None, recipient: User
    ) -> None:
        if not self._host:
            logger.warning("SMTP not configured, skipping email for message %s", message.id)
            return

        sender_name = sender.full_name if sender else "a user"
        link = f"{self._base_url}/conversations/{message.conversation_id}"
        preview = message.content[:PREVIEW_LENGTH]

        msg = EmailMessage()
        msg["From"] = self._from
        msg["To"] = recipient.email
        msg["Subject"] = f"New message from {sender_name}"
        msg.set_content(f"{sender_name} wrote:\n\n{preview}\n\nReply: {link}\n")
        msg.add_alternative(
            f"""
            <html>
                <body>
                    <p>Hello {escape(recipient.display_name)},</p>
                    <p><strong>{escape(sender_name)}</strong> sent you a message:</p>
                    <blockquote>{escape(preview)}</blockquote>
                    <p><a href="{link}">Open the conversation</a></p>
                </body>
            </html>
            """,
            subtype="html",
        )

        # STARTTLS on 587, implicit TLS on 465
        await aiosmtplib.send(
            msg,
            hostname=self._host,
            port=self._port,
            username=self._username,
            password=self._password,
            start_tls=self._tls and self._port == 587,
            use_tls=self._tls and self._port == 465,
        )
        logger.info("Message notification email sent for message %s", message.id)
