"""
models.py
Lightweight domain helpers (statuses, duration/plan vocabularies, dataclasses, errors).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

ACTIVE = "active"
EXPIRING_SOON = "expiring-soon"
EXPIRED = "expired"

STATUSES = (ACTIVE, EXPIRING_SOON, EXPIRED)
STATUS_FILTERS = ("all",) + STATUSES

# "Never expires" is stored as a far-future date; anything in this year or later is lifetime
LIFETIME_DATE = date(2099, 12, 31)
LIFETIME_YEAR = 2099

EXPIRING_SOON_DAYS = 14
FALLBACK_DAYS = 30

LIFETIME = "lifetime"
CUSTOM = "custom"

# Fixed day counts for the built-in duration keys
DURATION_DAYS = {
    "1-day": 1,
    "1-week": 7,
    "1-month": 30,
    "3-months": 90,
    "6-months": 180,
    "1-year": 365,
}


class SubscriptionError(Exception):
    """Base class for every error raised by the subscription core."""


class ValidationError(SubscriptionError):
    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class DuplicateError(ValidationError):
    """A vocabulary entry (plan type or duration key) already exists."""


class NotFoundError(SubscriptionError):
    pass


class PersistenceError(SubscriptionError):
    """Opaque failure from the storage backend; the message is shown to the user as-is."""


@dataclass(frozen=True)
class DurationOption:
    label: str
    value: str
    days: int | None  # None => resolved specially (lifetime / custom)


DEFAULT_DURATIONS = [
    DurationOption("1 Day", "1-day", 1),
    DurationOption("1 Week", "1-week", 7),
    DurationOption("1 Month", "1-month", 30),
    DurationOption("3 Months", "3-months", 90),
    DurationOption("6 Months", "6-months", 180),
    DurationOption("1 Year", "1-year", 365),
    DurationOption("Lifetime", LIFETIME, None),
    DurationOption("Custom Date", CUSTOM, None),
]

DEFAULT_PLAN_TYPES = ["Basic", "Premium", "Platinum"]


@dataclass(frozen=True)
class SubscriptionForm:
    """Caller-supplied fields for add/update. Derived fields are not accepted."""
    client_name: str
    plan_type: str
    duration: str
    start_date: date | None = None
    custom_duration_days: int | None = None
    custom_date: date | None = None
    notes: str | None = None
    cost: Decimal | None = None


@dataclass(frozen=True)
class SubscriptionRecord:
    id: str
    client_name: str
    plan_type: str
    duration: str
    start_date: date
    expiration_date: date
    status: str  # 'active', 'expiring-soon' or 'expired'
    custom_duration_days: int | None = None
    custom_date: date | None = None
    notes: str | None = None
    cost: Decimal | None = None

    @property
    def is_lifetime(self) -> bool:
        return self.expiration_date.year >= LIFETIME_YEAR

    def days_left(self, today: date) -> int:
        return (self.expiration_date - today).days

    def to_row(self) -> dict:
        """Flat storage encoding (snake_case keys, ISO dates). The id is not included."""
        return {
            "client_name": self.client_name,
            "plan_type": self.plan_type,
            "duration": self.duration,
            "custom_duration": self.custom_duration_days,
            "custom_date": self.custom_date.isoformat() if self.custom_date else None,
            "start_date": self.start_date.isoformat(),
            "expiration_date": self.expiration_date.isoformat(),
            "notes": self.notes,
            "cost": str(self.cost) if self.cost is not None else None,
            "status": self.status,
        }

    @classmethod
    def from_row(cls, row) -> "SubscriptionRecord":
        row = dict(row)
        custom_date = row.get("custom_date")
        cost = row.get("cost")
        return cls(
            id=str(row["id"]),
            client_name=row["client_name"],
            plan_type=row["plan_type"],
            duration=row["duration"],
            start_date=date.fromisoformat(row["start_date"]),
            expiration_date=date.fromisoformat(row["expiration_date"]),
            status=row["status"],
            custom_duration_days=row.get("custom_duration") or None,
            custom_date=date.fromisoformat(custom_date) if custom_date else None,
            notes=row.get("notes") or None,
            cost=Decimal(str(cost)) if cost is not None else None,
        )
