from __future__ import annotations

import logging

from marketplace_chat.application.dto.events import DispatchReport
from marketplace_chat.application.dto.message import MessageView, message_created_event
from marketplace_chat.application.exceptions import NotFoundError
from marketplace_chat.application.outcome import attempt, attempt_async
from marketplace_chat.application.policies.notifications import NotificationPolicy
from marketplace_chat.application.ports.broadcast import TopicBroadcaster
from marketplace_chat.application.ports.mailer import MailSender
from marketplace_chat.application.ports.push import PushSender
from marketplace_chat.application.ports.renderer import FragmentRenderer
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.domain.entities.user import display_name_for
from marketplace_chat.domain.events.message_created import MessageCreated
from marketplace_chat.domain.value_objects.enums import MessageType

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Out-of-band side effects for one newly created message.

    Email, push and re-broadcast are isolated from each other: a failing step
    is logged and recorded in the report, the remaining steps still run.
    Only a missing message is raised, so the caller can discard the job.
    """

    def __init__(
        self,
        *,
        mailer: MailSender,
        push: PushSender,
        broadcaster: TopicBroadcaster,
        renderer: FragmentRenderer,
        policy: NotificationPolicy | None = None,
    ) -> None:
        self._mailer = mailer
        self._push = push
        self._broadcaster = broadcaster
        self._renderer = renderer
        self._policy = policy or NotificationPolicy()

    async def dispatch(self, fact: MessageCreated, uow: UnitOfWork) -> DispatchReport:
        report = DispatchReport(message_id=str(fact.message_id))

        message = await uow.messages.get_by_id(fact.message_id)
        if message is None:
            raise NotFoundError(f"Message {fact.message_id} not found")

        try:
            kind = MessageType(message.type)
        except ValueError:
            kind = None
        if kind is None or not kind.notifies_recipient:
            logger.info("Skipping notifications for %s message %s", message.type, message.id)
            report.skipped = True
            return report

        recipient = await uow.users.get_by_id(message.recipient_id)
        if recipient is None:
            logger.warning(
                "Recipient %s of message %s not found, skipping", message.recipient_id, message.id,
            )
            report.skipped = True
            return report
        sender = await uow.users.get_by_id(message.sender_id)

        if self._policy.should_send_email(recipient):
            outcome = await attempt_async(
                "Message notification email",
                lambda: self._mailer.send_new_message_notification(message, sender, recipient),
                default=None,
            )
            report.email_sent = outcome.ok
            if outcome.error is not None:
                report.errors["email"] = repr(outcome.error)

        if self._policy.should_send_push(recipient):
            outcome = await attempt_async(
                "Push notification",
                lambda: self._push.send_new_message(message, recipient),
                default=None,
            )
            report.push_sent = outcome.ok
            if outcome.error is not None:
                report.errors["push"] = repr(outcome.error)

        sender_name = display_name_for(sender, message.sender_id)
        html = attempt(
            "Fragment rendering",
            lambda: self._renderer.render(
                message, sender_name=sender_name, viewer_id=message.recipient_id,
            ),
            default="",
        ).value
        event = message_created_event(MessageView.from_message(message, sender_name), html)
        outcome = await attempt_async(
            "Message re-broadcast",
            lambda: self._broadcaster.broadcast(message.conversation_id, event),
            default=0,
        )
        report.rebroadcast = outcome.ok
        if outcome.error is not None:
            report.errors["rebroadcast"] = repr(outcome.error)

        logger.info(
            "Notification processed message=%s conversation=%s type=%s recipient=%s "
            "email=%s push=%s rebroadcast=%s",
            message.id, message.conversation_id, message.type, recipient.id,
            report.email_sent, report.push_sent, report.rebroadcast,
        )
        return report
