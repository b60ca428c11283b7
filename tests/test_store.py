from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

import utils
from models import (
    ACTIVE,
    EXPIRED,
    EXPIRING_SOON,
    DEFAULT_DURATIONS,
    DEFAULT_PLAN_TYPES,
    DuplicateError,
    DurationOption,
    NotFoundError,
    PersistenceError,
    SubscriptionForm,
    ValidationError,
)
from store import SubscriptionStore

from conftest import TODAY


class MemoryBackend:
    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.calls: list[str] = []
        self._next = 0

    def list_by_owner(self, owner_id):
        self.calls.append("list")
        return [dict(r) for r in self.rows.values() if r["user_id"] == owner_id]

    def insert(self, owner_id, fields):
        self.calls.append("insert")
        self._next += 1
        row = {"id": f"row-{self._next}", "user_id": owner_id, **fields}
        self.rows[row["id"]] = row
        return dict(row)

    def update(self, record_id, owner_id, fields):
        self.calls.append("update")
        self.rows[record_id].update(fields)

    def delete(self, record_id, owner_id):
        self.calls.append("delete")
        del self.rows[record_id]


class FailingBackend(MemoryBackend):
    def insert(self, owner_id, fields):
        raise PersistenceError("network unreachable")

    def update(self, record_id, owner_id, fields):
        raise PersistenceError("network unreachable")

    def delete(self, record_id, owner_id):
        raise PersistenceError("network unreachable")


def _form(**overrides) -> SubscriptionForm:
    fields = dict(client_name="Netflix", plan_type="Basic", duration="1-month", start_date=TODAY)
    fields.update(overrides)
    return SubscriptionForm(**fields)


def test_add_derives_expiration_and_status(store):
    record = store.add(_form(start_date=TODAY - timedelta(days=20)))
    assert record.expiration_date == TODAY + timedelta(days=10)
    assert record.status == EXPIRING_SOON
    assert record.id
    assert store.records == (record,)


def test_add_assigns_unique_ids_and_prepends(store):
    first = store.add(_form(client_name="A"))
    second = store.add(_form(client_name="B"))
    assert first.id != second.id
    assert [r.client_name for r in store.records] == ["B", "A"]


def test_add_defaults_start_date_to_today(store):
    record = store.add(_form(start_date=None))
    assert record.start_date == TODAY


def test_add_requires_fields(store):
    with pytest.raises(ValidationError) as exc:
        store.add(_form(client_name="", duration=""))
    assert "Client name is required." in exc.value.errors
    assert "Duration is required." in exc.value.errors
    assert store.records == ()


def test_add_rejects_unknown_plan_type(store):
    with pytest.raises(ValidationError):
        store.add(_form(plan_type="Gold"))
    assert store.records == ()


def test_add_then_remove_restores_collection(store):
    existing = store.add(_form(client_name="Keep"))
    before = store.records
    added = store.add(_form(client_name="Temp"))
    store.remove(added.id)
    assert store.records == before
    assert store.get(existing.id) == existing


def test_remove_unknown_id_raises(store):
    with pytest.raises(NotFoundError):
        store.remove("missing")


def test_update_keeps_id_and_recomputes(store):
    record = store.add(_form())
    updated = store.update(record.id, _form(client_name="Netflix 4K", duration="1-week",
                                            start_date=TODAY - timedelta(days=10)))
    assert updated.id == record.id
    assert updated.client_name == "Netflix 4K"
    assert updated.expiration_date == utils.resolve_expiration(TODAY - timedelta(days=10), "1-week")
    assert updated.status == utils.classify_status(updated.expiration_date, TODAY) == EXPIRED
    assert store.get(record.id) == updated


def test_update_unknown_id_raises(store):
    with pytest.raises(NotFoundError):
        store.update("missing", _form())


def test_update_invalid_leaves_record(store):
    record = store.add(_form())
    with pytest.raises(ValidationError):
        store.update(record.id, _form(client_name=""))
    assert store.get(record.id) == record


def test_update_keeps_orphaned_plan_type(store):
    record = store.add(_form(plan_type="Premium"))
    store.remove_plan_type("Premium")
    updated = store.update(record.id, _form(plan_type="Premium", notes="still here"))
    assert updated.plan_type == "Premium"


def test_lifetime_and_custom_date(store):
    lifetime = store.add(_form(duration="lifetime", start_date=date(1990, 1, 1)))
    assert lifetime.expiration_date == date(2099, 12, 31)
    assert lifetime.status == ACTIVE
    assert lifetime.is_lifetime

    target = TODAY + timedelta(days=3)
    custom = store.add(_form(duration="custom", custom_date=target))
    assert custom.expiration_date == target
    assert custom.status == EXPIRING_SOON


def test_custom_date_dropped_for_other_durations(store):
    record = store.add(_form(duration="1-month", custom_date=TODAY))
    assert record.custom_date is None
    assert record.expiration_date == TODAY + timedelta(days=30)


def test_gym_membership_window(store):
    just_outside = store.add(_form(client_name="Gym", duration="custom", custom_duration_days=90,
                                   start_date=TODAY - timedelta(days=75)))
    assert just_outside.status == ACTIVE
    inside = store.add(_form(client_name="Gym", duration="custom", custom_duration_days=90,
                             start_date=TODAY - timedelta(days=77)))
    assert inside.status == EXPIRING_SOON


def test_user_duration_resolves_its_day_count(store):
    store.add_duration(DurationOption("2 Weeks", "2-weeks", 14))
    record = store.add(_form(duration="2-weeks"))
    assert record.custom_duration_days == 14
    assert record.expiration_date == TODAY + timedelta(days=14)


def test_refresh_statuses_follows_clock():
    current = {"today": TODAY}
    store = SubscriptionStore(clock=lambda: current["today"])
    record = store.add(_form())
    assert record.status == ACTIVE

    current["today"] = TODAY + timedelta(days=20)
    assert store.refresh_statuses() == 1
    assert store.get(record.id).status == EXPIRING_SOON

    current["today"] = TODAY + timedelta(days=31)
    store.refresh_statuses()
    assert store.get(record.id).status == EXPIRED


def test_store_filter(store):
    store.add(_form(client_name="Netflix"))
    store.add(_form(client_name="Spotify", start_date=TODAY - timedelta(days=40)))
    assert [r.client_name for r in store.filter("all", "netflix")] == ["Netflix"]
    assert [r.client_name for r in store.filter("expired", "")] == ["Spotify"]


def test_plan_type_vocabulary(store):
    assert store.plan_types == tuple(DEFAULT_PLAN_TYPES)
    store.add_plan_type("  Family ")
    assert store.plan_types[-1] == "Family"

    with pytest.raises(DuplicateError):
        store.add_plan_type("Basic")
    with pytest.raises(DuplicateError):
        store.add_plan_type("   ")
    assert store.plan_types == tuple(DEFAULT_PLAN_TYPES) + ("Family",)

    # case-sensitive
    store.add_plan_type("basic")
    assert "basic" in store.plan_types


def test_remove_plan_type(store):
    store.remove_plan_type("Basic")
    assert "Basic" not in store.plan_types
    with pytest.raises(NotFoundError):
        store.remove_plan_type("Basic")


def test_duration_vocabulary(store):
    assert store.durations == tuple(DEFAULT_DURATIONS)
    store.add_duration(DurationOption(" 2 Weeks ", " 2-weeks ", 14))
    assert store.durations[-1] == DurationOption("2 Weeks", "2-weeks", 14)
    assert store.duration_label("2-weeks") == "2 Weeks"
    assert store.duration_label("nope") == "nope"

    with pytest.raises(DuplicateError):
        store.add_duration(DurationOption("Monthly", "1-month", 30))
    with pytest.raises(ValidationError):
        store.add_duration(DurationOption("", "x", 3))

    idx = len(store.durations) - 1
    store.update_duration(idx, DurationOption("Fortnight", "2-weeks", 14))
    assert store.durations[idx].label == "Fortnight"
    with pytest.raises(DuplicateError):
        store.update_duration(idx, DurationOption("Fortnight", "1-day", 14))

    store.remove_duration(idx)
    assert store.durations == tuple(DEFAULT_DURATIONS)
    with pytest.raises(NotFoundError):
        store.remove_duration(99)
    with pytest.raises(NotFoundError):
        store.update_duration(-1, DurationOption("a", "b", 1))


def test_backend_write_then_commit():
    backend = MemoryBackend()
    store = SubscriptionStore(backend=backend, owner_id=7, clock=lambda: TODAY)

    record = store.add(_form(cost=Decimal("9.99")))
    assert record.id == "row-1"
    assert backend.rows["row-1"]["expiration_date"] == (TODAY + timedelta(days=30)).isoformat()
    assert backend.rows["row-1"]["cost"] == "9.99"

    store.update(record.id, _form(client_name="Hulu"))
    assert backend.rows["row-1"]["client_name"] == "Hulu"

    store.remove(record.id)
    assert backend.rows == {}
    assert backend.calls == ["insert", "update", "delete"]


def test_load_rebuilds_records_with_fresh_status():
    backend = MemoryBackend()
    writer = SubscriptionStore(backend=backend, owner_id=1, clock=lambda: TODAY)
    writer.add(_form(client_name="Old", start_date=TODAY - timedelta(days=10), cost=Decimal("0")))

    later = SubscriptionStore(backend=backend, owner_id=1, clock=lambda: TODAY + timedelta(days=25))
    later.load()
    (record,) = later.records
    assert record.client_name == "Old"
    assert record.cost == Decimal("0")
    assert record.status == EXPIRED


def test_persistence_failure_leaves_memory_untouched():
    backend = FailingBackend()
    store = SubscriptionStore(backend=backend, owner_id=1, clock=lambda: TODAY)
    with pytest.raises(PersistenceError):
        store.add(_form())
    assert store.records == ()

    # seed a record through a working backend, then swap in the failing one
    store.backend = MemoryBackend()
    record = store.add(_form())
    store.backend = backend
    with pytest.raises(PersistenceError):
        store.update(record.id, _form(client_name="Changed"))
    with pytest.raises(PersistenceError):
        store.remove(record.id)
    assert store.records == (record,)


def test_load_without_backend_is_noop(store):
    store.add(_form())
    store.load()
    assert len(store.records) == 1


def test_update_keeps_day_count_of_removed_duration(store):
    store.add_duration(DurationOption("2 Weeks", "2-weeks", 14))
    record = store.add(_form(duration="2-weeks"))
    store.remove_duration(len(store.durations) - 1)

    updated = store.update(record.id, _form(duration="2-weeks", notes="renewed by card"))
    assert updated.custom_duration_days == 14
    assert updated.expiration_date == record.expiration_date == TODAY + timedelta(days=14)
    assert store.duration_days("2-weeks", record) == 14
    assert store.duration_days("2-weeks") is None


def test_update_without_start_date_keeps_existing(store):
    start = TODAY - timedelta(days=100)
    record = store.add(_form(client_name="Gym", start_date=start))
    updated = store.update(record.id, SubscriptionForm("Gym", "Basic", "1-month"))
    assert updated.start_date == start
    assert updated.expiration_date == record.expiration_date
    assert updated.status == EXPIRED
