"""
messaging.py
Message templates, recipient selection and recording of sent messages.

Delivery (email/SMS gateway) is not wired up: a "sent" message is rendered
per recipient, stored in the messages table and logged.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date

import db
import dues
import utils
from models import MESSAGE_TYPES, Member, Message, Payment, Settings

logger = logging.getLogger(__name__)

TEMPLATES = {
    "reminder": {
        "subject": "Payment Reminder",
        "content": (
            "Dear {{member_name}}, your membership contribution is due on {{due_date}}. "
            "Amount: {{payment_amount}}. Please make your payment to continue supporting our cause."
        ),
    },
    "thank_you": {
        "subject": "Thank You for Your Contribution",
        "content": (
            "Dear {{member_name}}, thank you for your contribution of {{amount}} on {{date}}. "
            "Your support helps us continue our important work."
        ),
    },
    "announcement": {
        "subject": "Important Announcement",
        "content": "We have an important update to share with you...",
    },
}

RECIPIENT_KINDS = ("single", "bulk", "due_members")


def render_message(
    content: str,
    member: Member,
    payments: list[Payment],
    settings: Settings,
    today: date | None = None,
) -> str:
    """Fill template placeholders for one member. `payments` are that member's payments."""
    today = today or date.today()
    next_due = dues.get_next_due_date(member, dues.get_last_paid_date(payments))
    amount = utils.format_currency(member.payment_amount, settings.default_currency)
    replacements = {
        "{{due_date}}": utils.format_date(next_due),
        "{{payment_amount}}": amount,
        "{{member_name}}": member.full_name,
        "{{amount}}": amount,
        "{{date}}": utils.format_date(today),
    }
    for placeholder, value in replacements.items():
        content = content.replace(placeholder, value)
    return content


def recipients(
    kind: str,
    members: list[Member],
    payments: list[Payment],
    settings: Settings,
    member_id: int | None = None,
    today: date | None = None,
) -> list[Member]:
    if kind == "single":
        return [m for m in members if m.id == member_id]
    if kind == "bulk":
        return [m for m in members if m.active]
    if kind == "due_members":
        return dues.due_members(members, payments, settings.reminder_window_days, today)
    raise ValueError(f"Unknown recipient type: {kind}")


def send_messages(
    message_type: str,
    subject: str | None,
    content: str,
    to: list[Member],
    payments: list[Payment],
    settings: Settings,
    today: date | None = None,
) -> list[Message]:
    """Render and record one message per recipient."""
    if message_type not in MESSAGE_TYPES:
        raise ValueError(f"Unknown message type: {message_type}")
    if not content.strip():
        raise ValueError("Message content is required.")

    grouped = dues.payments_by_member(payments)
    sent_at = db.now_iso()
    sent: list[Message] = []
    for member in to:
        body = render_message(content, member, grouped.get(member.id, []), settings, today)
        message = Message(
            id=None,
            member_id=member.id,
            message_type=message_type,
            message_subject=subject,
            message_content=body,
            sent_at=sent_at,
        )
        message_id = db.create_message(message)
        sent.append(replace(message, id=message_id))

    logger.info("Sent %d %s message(s) from %s", len(sent), message_type, settings.from_email)
    return sent


def send_due_reminders(
    members: list[Member],
    payments: list[Payment],
    settings: Settings,
    today: date | None = None,
) -> list[Message]:
    template = TEMPLATES["reminder"]
    to = recipients("due_members", members, payments, settings, today=today)
    return send_messages("reminder", template["subject"], template["content"], to, payments, settings, today)
