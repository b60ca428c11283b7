"""
utils.py
Expiration/status computation, validation, filtering, calendar layout, exports, sample data.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable

import pandas as pd

from models import (
    ACTIVE,
    CUSTOM,
    DURATION_DAYS,
    EXPIRED,
    EXPIRING_SOON,
    EXPIRING_SOON_DAYS,
    FALLBACK_DAYS,
    LIFETIME,
    LIFETIME_DATE,
    LIFETIME_YEAR,
    STATUS_FILTERS,
    STATUSES,
    SubscriptionForm,
    SubscriptionRecord,
    ValidationError,
)


def format_date(d: date) -> str:
    return d.strftime("%b %d, %Y")


def resolve_expiration(
    start: date,
    duration: str,
    custom_duration_days: int | None = None,
    custom_date: date | None = None,
) -> date:
    """
    Expiration date for a subscription starting on `start`.

    Unknown duration keys with no explicit day count fall back to 30 days;
    no error is raised for them.
    """
    if duration == LIFETIME:
        return LIFETIME_DATE
    if duration == CUSTOM and custom_date:
        return custom_date
    days = DURATION_DAYS.get(duration) or custom_duration_days or FALLBACK_DAYS
    return start + timedelta(days=days)


def classify_status(expiration: date, today: date) -> str:
    # Lifetime sentinel wins even over a past comparison
    if expiration.year >= LIFETIME_YEAR:
        return ACTIVE
    if expiration <= today:
        return EXPIRED
    if (expiration - today).days <= EXPIRING_SOON_DAYS:
        return EXPIRING_SOON
    return ACTIVE


def validate_form(form: SubscriptionForm) -> list[str]:
    errors: list[str] = []
    if not (form.client_name or "").strip():
        errors.append("Client name is required.")
    if not (form.plan_type or "").strip():
        errors.append("Plan type is required.")
    if not (form.duration or "").strip():
        errors.append("Duration is required.")
    if form.start_date is not None and not isinstance(form.start_date, date):
        errors.append("Start date must be a valid date.")
    if form.custom_duration_days is not None:
        if isinstance(form.custom_duration_days, bool) or not isinstance(form.custom_duration_days, int):
            errors.append("Custom duration must be a whole number of days.")
        elif form.custom_duration_days <= 0:
            errors.append("Custom duration must be at least 1 day.")
    if form.custom_date is not None and not isinstance(form.custom_date, date):
        errors.append("Custom date must be a valid date.")
    if form.cost is not None:
        try:
            if Decimal(str(form.cost)) < 0:
                errors.append("Cost cannot be negative.")
        except ArithmeticError:
            errors.append("Cost must be numeric.")
    return errors


def filter_subscriptions(
    records: Iterable[SubscriptionRecord],
    status_filter: str = "all",
    search: str = "",
) -> list[SubscriptionRecord]:
    """
    Records passing both the status filter and the text search, in input order.

    The search is a case-insensitive substring match on client name or notes.
    """
    if status_filter not in STATUS_FILTERS:
        raise ValidationError(f"Unknown status filter: {status_filter!r}")
    needle = (search or "").strip().lower()

    out = []
    for r in records:
        if status_filter != "all" and r.status != status_filter:
            continue
        if needle:
            in_name = needle in r.client_name.lower()
            in_notes = r.notes is not None and needle in r.notes.lower()
            if not (in_name or in_notes):
                continue
        out.append(r)
    return out


def status_counts(records: Iterable[SubscriptionRecord]) -> dict[str, int]:
    counts = {"total": 0}
    counts.update({s: 0 for s in STATUSES})
    for r in records:
        counts["total"] += 1
        counts[r.status] = counts.get(r.status, 0) + 1
    return counts


def sort_by_expiration(records: Iterable[SubscriptionRecord]) -> list[SubscriptionRecord]:
    """Latest expiration first; ties keep their input order."""
    return sorted(records, key=lambda r: r.expiration_date, reverse=True)


# ---------- Calendar ----------

def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    idx = year * 12 + (month - 1) + delta
    return idx // 12, idx % 12 + 1


def month_grid(year: int, month: int) -> list[list[date | None]]:
    """
    Weeks of the month, Sunday first. Cells outside the month are None.
    """
    cal = calendar.Calendar(firstweekday=6)
    return [
        [d if d.month == month else None for d in week]
        for week in cal.monthdatescalendar(year, month)
    ]


def subscriptions_by_day(records: Iterable[SubscriptionRecord], year: int, month: int) -> dict[date, list[SubscriptionRecord]]:
    by_day: dict[date, list[SubscriptionRecord]] = {}
    for r in records:
        d = r.expiration_date
        if d.year == year and d.month == month:
            by_day.setdefault(d, []).append(r)
    return by_day


# ---------- Exports ----------

EXPORT_COLUMNS = [
    "id", "client_name", "plan_type", "duration", "start_date",
    "expiration_date", "status", "cost", "notes",
]


def subscriptions_frame(records: Iterable[SubscriptionRecord]) -> pd.DataFrame:
    rows = [{"id": r.id, **r.to_row()} for r in records]
    if not rows:
        return pd.DataFrame(columns=EXPORT_COLUMNS)
    return pd.DataFrame(rows)[EXPORT_COLUMNS]


def subscriptions_to_csv_bytes(records: Iterable[SubscriptionRecord]) -> bytes:
    return subscriptions_frame(records).to_csv(index=False).encode("utf-8")


def sample_forms(today: date) -> list[SubscriptionForm]:
    """
    Eight demo subscriptions covering every status (active, expiring soon, expired).
    """
    return [
        SubscriptionForm("Netflix", "Basic", "1-month", today - timedelta(days=10),
                         notes="Family plan with 4K streaming"),
        SubscriptionForm("Spotify Premium", "Premium", "1-month", today - timedelta(days=5),
                         notes="Individual plan"),
        SubscriptionForm("Adobe Creative Cloud", "Platinum", "1-year", today - timedelta(days=60),
                         notes="Full suite for design work"),
        # Expiring soon
        SubscriptionForm("GitHub Pro", "Premium", "1-month", today - timedelta(days=20),
                         notes="Private repositories and advanced features"),
        SubscriptionForm("Gym Membership", "Basic", CUSTOM, today - timedelta(days=77),
                         custom_duration_days=90, notes="Annual membership with personal trainer sessions"),
        # Expired
        SubscriptionForm("New York Times", "Premium", "1-month", today - timedelta(days=35),
                         notes="Digital subscription"),
        SubscriptionForm("VPN Service", "Platinum", "1-year", today - timedelta(days=370),
                         notes="NordVPN premium plan"),
        SubscriptionForm("Microsoft 365", "Basic", "1-month", today - timedelta(days=8),
                         notes="Office suite and cloud storage"),
    ]
