"""
models.py
Domain types (members, payments, messages, settings) and frequency tables.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class InvalidInputError(ValueError):
    """Raised when a date or timestamp handed to the engine cannot be parsed."""


class Frequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "three_months"
    SEMI_ANNUAL = "six_months"
    YEARLY = "yearly"


class PaymentStatus(str, Enum):
    PAID = "paid"
    UNPAID = "unpaid"
    OVERDUE = "overdue"


class DueStatus(str, Enum):
    CURRENT = "current"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"


# Interval in months for each payment frequency (used for due dates and income)
FREQUENCY_MONTHS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.SEMI_ANNUAL: 6,
    Frequency.YEARLY: 12,
}

FREQUENCY_LABELS = {
    Frequency.MONTHLY: "Monthly",
    Frequency.QUARTERLY: "Every 3 months",
    Frequency.SEMI_ANNUAL: "Every 6 months",
    Frequency.YEARLY: "Yearly",
}

PAYMENT_METHODS = ("bank", "cash", "branch")
CONTACT_CHANNELS = ("email", "sms", "both")
MESSAGE_TYPES = ("reminder", "thank_you", "announcement")
USER_ROLES = ("admin", "staff")


@dataclass(frozen=True)
class Member:
    id: int | None
    full_name: str
    phone_number: str
    email: str
    payment_amount: float
    payment_frequency: str
    payment_start_date: str  # YYYY-MM-DD
    payment_method: str = "bank"
    preferred_contact: str = "email"
    active: bool = True
    alt_phone_number: str | None = None
    address: str | None = None
    location: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Payment:
    id: int | None
    member_id: int
    amount: float
    payment_date: str  # ISO timestamp
    payment_method: str = "bank"
    status: str = PaymentStatus.PAID.value
    notes: str | None = None


@dataclass(frozen=True)
class Message:
    id: int | None
    member_id: int | None  # None for bulk announcements
    message_type: str
    message_content: str
    sent_at: str
    message_subject: str | None = None
    channel: str = "email"


@dataclass(frozen=True)
class SearchResult:
    member: Member
    score: float
    matches: list[str]  # member fields that matched the query


@dataclass(frozen=True)
class Settings:
    org_name: str = "Hope Foundation"
    org_address: str = "Addis Ababa, Ethiopia"
    default_currency: str = "ETB"
    from_email: str = "admin@hopefoundation.org"
    reminder_window_days: int = 3
    default_payment_amount: float = 500.0
