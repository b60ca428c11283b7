"""
store.py
In-memory subscription collection + plan-type / duration vocabularies.

Every write re-derives expiration_date and status. When a backend is wired in,
the backend write happens first and the in-memory list changes only if it succeeded.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import date
from typing import Callable, Protocol

import utils
from models import (
    CUSTOM,
    DEFAULT_DURATIONS,
    DEFAULT_PLAN_TYPES,
    DURATION_DAYS,
    LIFETIME,
    DuplicateError,
    DurationOption,
    NotFoundError,
    PersistenceError,
    SubscriptionForm,
    SubscriptionRecord,
    ValidationError,
)

LOGGER = logging.getLogger(__name__)


class SubscriptionBackend(Protocol):
    def list_by_owner(self, owner_id) -> list[dict]: ...

    def insert(self, owner_id, fields: dict) -> dict: ...

    def update(self, record_id: str, owner_id, fields: dict) -> None: ...

    def delete(self, record_id: str, owner_id) -> None: ...


class SubscriptionStore:
    def __init__(
        self,
        backend: SubscriptionBackend | None = None,
        owner_id=None,
        clock: Callable[[], date] = date.today,
        plan_types: list[str] | None = None,
        durations: list[DurationOption] | None = None,
    ):
        self.backend = backend
        self.owner_id = owner_id
        self.clock = clock
        self._records: list[SubscriptionRecord] = []
        self._plan_types = list(DEFAULT_PLAN_TYPES if plan_types is None else plan_types)
        self._durations = list(DEFAULT_DURATIONS if durations is None else durations)

    # ---------- Records ----------

    @property
    def records(self) -> tuple[SubscriptionRecord, ...]:
        return tuple(self._records)

    def get(self, record_id: str) -> SubscriptionRecord:
        return self._records[self._index_of(record_id)]

    def load(self) -> None:
        if self.backend is None:
            return
        rows = self._persist("list", self.backend.list_by_owner, self.owner_id)
        self._records = [SubscriptionRecord.from_row(r) for r in rows]
        self.refresh_statuses()
        LOGGER.info("Loaded %d subscriptions for owner %s", len(self._records), self.owner_id)

    def add(self, form: SubscriptionForm) -> SubscriptionRecord:
        errors = utils.validate_form(form)
        if not errors and form.plan_type not in self._plan_types:
            errors.append(f"Unknown plan type: {form.plan_type}")
        if errors:
            raise ValidationError(errors)

        record = self._build("", self._normalise(form))
        if self.backend is not None:
            stored = self._persist("insert", self.backend.insert, self.owner_id, record.to_row())
            record = replace(record, id=str(stored["id"]))
        else:
            record = replace(record, id=uuid.uuid4().hex)

        self._records.insert(0, record)
        LOGGER.info("Added subscription %s (%s, expires %s)", record.id, record.client_name, record.expiration_date)
        return record

    def update(self, record_id: str, form: SubscriptionForm) -> SubscriptionRecord:
        idx = self._index_of(record_id)
        errors = utils.validate_form(form)
        if errors:
            raise ValidationError(errors)

        record = self._build(record_id, self._normalise(form, existing=self._records[idx]))
        if self.backend is not None:
            self._persist("update", self.backend.update, record_id, self.owner_id, record.to_row())

        self._records[idx] = record
        LOGGER.info("Updated subscription %s (expires %s, %s)", record_id, record.expiration_date, record.status)
        return record

    def remove(self, record_id: str) -> None:
        idx = self._index_of(record_id)
        if self.backend is not None:
            self._persist("delete", self.backend.delete, record_id, self.owner_id)
        del self._records[idx]
        LOGGER.info("Removed subscription %s", record_id)

    def refresh_statuses(self) -> int:
        """Re-classify every record against today. Returns how many changed."""
        today = self.clock()
        changed = 0
        for i, r in enumerate(self._records):
            status = utils.classify_status(r.expiration_date, today)
            if status != r.status:
                self._records[i] = replace(r, status=status)
                changed += 1
        return changed

    def filter(self, status_filter: str = "all", search: str = "") -> list[SubscriptionRecord]:
        return utils.filter_subscriptions(self._records, status_filter, search)

    # ---------- Plan types ----------

    @property
    def plan_types(self) -> tuple[str, ...]:
        return tuple(self._plan_types)

    def add_plan_type(self, label: str) -> None:
        label = (label or "").strip()
        if not label:
            raise DuplicateError("Plan type cannot be empty")
        if label in self._plan_types:
            raise DuplicateError("This plan type already exists")
        self._plan_types.append(label)
        LOGGER.info("Added plan type %r", label)

    def remove_plan_type(self, label: str) -> None:
        # Records keep their label; nothing cascades
        if label not in self._plan_types:
            raise NotFoundError(f"Unknown plan type: {label}")
        self._plan_types.remove(label)
        LOGGER.info("Removed plan type %r", label)

    # ---------- Durations ----------

    @property
    def durations(self) -> tuple[DurationOption, ...]:
        return tuple(self._durations)

    def duration_label(self, value: str) -> str:
        for d in self._durations:
            if d.value == value:
                return d.label
        return value

    def duration_days(self, value: str, existing: SubscriptionRecord | None = None) -> int | None:
        """
        Day count for a user-defined duration key. A record being edited keeps
        its own count when the key has since left the vocabulary.
        """
        for d in self._durations:
            if d.value == value and d.days:
                return d.days
        if existing is not None and existing.duration == value:
            return existing.custom_duration_days
        return None

    def add_duration(self, option: DurationOption) -> DurationOption:
        option = self._clean_duration(option)
        if any(d.value == option.value for d in self._durations):
            raise DuplicateError("This duration value already exists")
        self._durations.append(option)
        LOGGER.info("Added duration %r (%s days)", option.value, option.days)
        return option

    def update_duration(self, index: int, option: DurationOption) -> DurationOption:
        self._check_duration_index(index)
        option = self._clean_duration(option)
        if any(d.value == option.value for i, d in enumerate(self._durations) if i != index):
            raise DuplicateError("This duration value already exists")
        self._durations[index] = option
        LOGGER.info("Updated duration #%d to %r", index, option.value)
        return option

    def remove_duration(self, index: int) -> None:
        self._check_duration_index(index)
        removed = self._durations.pop(index)
        LOGGER.info("Removed duration %r", removed.value)

    # ---------- Internals ----------

    def _index_of(self, record_id: str) -> int:
        for i, r in enumerate(self._records):
            if r.id == record_id:
                return i
        raise NotFoundError(f"Subscription not found: {record_id}")

    def _check_duration_index(self, index: int) -> None:
        if not 0 <= index < len(self._durations):
            raise NotFoundError(f"No duration at position {index}")

    @staticmethod
    def _clean_duration(option: DurationOption) -> DurationOption:
        label = (option.label or "").strip()
        value = (option.value or "").strip()
        errors = []
        if not label:
            errors.append("Duration label cannot be empty")
        if not value:
            errors.append("Duration value cannot be empty")
        if option.days is not None and (not isinstance(option.days, int) or option.days <= 0):
            errors.append("Duration days must be a positive whole number")
        if errors:
            raise ValidationError(errors)
        return DurationOption(label, value, option.days)

    def _normalise(self, form: SubscriptionForm, existing: SubscriptionRecord | None = None) -> SubscriptionForm:
        custom_days = form.custom_duration_days
        if form.duration in DURATION_DAYS or form.duration == LIFETIME:
            custom_days = None
        elif custom_days is None and form.duration != CUSTOM:
            custom_days = self.duration_days(form.duration, existing)

        if form.start_date:
            start_date = form.start_date
        elif existing is not None:
            start_date = existing.start_date
        else:
            start_date = self.clock()

        return replace(
            form,
            client_name=form.client_name.strip(),
            plan_type=form.plan_type.strip(),
            start_date=start_date,
            custom_duration_days=custom_days,
            custom_date=form.custom_date if form.duration == CUSTOM else None,
            notes=(form.notes or "").strip() or None,
        )

    def _build(self, record_id: str, form: SubscriptionForm) -> SubscriptionRecord:
        expiration = utils.resolve_expiration(
            form.start_date, form.duration, form.custom_duration_days, form.custom_date
        )
        return SubscriptionRecord(
            id=record_id,
            client_name=form.client_name,
            plan_type=form.plan_type,
            duration=form.duration,
            start_date=form.start_date,
            expiration_date=expiration,
            status=utils.classify_status(expiration, self.clock()),
            custom_duration_days=form.custom_duration_days,
            custom_date=form.custom_date,
            notes=form.notes,
            cost=form.cost,
        )

    def _persist(self, action: str, fn, *args):
        try:
            return fn(*args)
        except PersistenceError as exc:
            LOGGER.error("Subscription %s failed for owner %s: %s", action, self.owner_id, exc)
            raise
