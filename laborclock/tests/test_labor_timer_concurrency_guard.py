from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from laborclock.core.errors import ConflictError, InvalidStateError
from laborclock.database import SessionLocal
from laborclock.models.labor_entry import LaborEntry
from laborclock.services import labor_timer
from laborclock.services.entry_store import EntryStore

T0 = datetime(2026, 3, 2, 8, 0, 0)


def _active_row(company_id: int, employee_id: int, work_order_id: int) -> LaborEntry:
    return LaborEntry(
        id=str(uuid4()),
        company_id=company_id,
        employee_id=employee_id,
        work_order_id=work_order_id,
        start_time=T0,
        end_time=None,
        work_type="repair",
        status="active",
    )


def test_unique_active_labor_entry_prevents_duplicates():
    db1 = SessionLocal()
    db2 = SessionLocal()

    try:
        db1.add(_active_row(1, 21, 42))
        db1.commit()

        db2.add(_active_row(1, 21, 99))
        with pytest.raises(IntegrityError):
            db2.commit()
    finally:
        db1.rollback()
        db2.rollback()
        db1.close()
        db2.close()


def test_racing_start_loses_at_insert_with_conflict(monkeypatch):
    winner = labor_timer.start_timer(1, 21, "repair", work_order_id=42, work_order_number="WO-42", started_at=T0)

    # The loser's pre-insert check ran before the winner committed.
    original = EntryStore.find_active_by_employee
    calls = {"n": 0}

    def stale_check(self, employee_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return original(self, employee_id)

    monkeypatch.setattr(EntryStore, "find_active_by_employee", stale_check)

    with pytest.raises(ConflictError) as exc:
        labor_timer.start_timer(1, 21, "inspection", work_order_id=99, started_at=T0)

    assert exc.value.conflicting_entry_id == winner.id
    assert exc.value.work_order_number == "WO-42"

    monkeypatch.undo()
    assert [t.id for t in labor_timer.list_active_timers(1)] == [winner.id]


def test_retried_start_after_ambiguous_failure_conflicts():
    first = labor_timer.start_timer(1, 21, "repair", started_at=T0)

    with pytest.raises(ConflictError) as exc:
        labor_timer.start_timer(1, 21, "repair", started_at=T0)

    assert exc.value.conflicting_entry_id == first.id


def test_concurrent_stop_is_applied_once(monkeypatch):
    entry = labor_timer.start_timer(1, 21, "repair", started_at=T0)

    original_require = EntryStore.require

    def require_then_other_device_stops(self, entry_id):
        row = original_require(self, entry_id)
        monkeypatch.setattr(EntryStore, "require", original_require)
        labor_timer.stop_timer(1, entry_id, ended_at=T0 + timedelta(hours=1), regular_rate=20)
        return row

    monkeypatch.setattr(EntryStore, "require", require_then_other_device_stops)

    with pytest.raises(InvalidStateError):
        labor_timer.stop_timer(1, entry.id, ended_at=T0 + timedelta(hours=4), regular_rate=50)

    db = SessionLocal()
    try:
        row = db.query(LaborEntry).filter(LaborEntry.id == entry.id).one()
        assert row.status == "completed"
        assert row.hours_worked == Decimal("1.00")
        assert row.total_labor_cost == Decimal("20.00")
    finally:
        db.close()


def test_stop_if_active_is_compare_and_set():
    entry = labor_timer.start_timer(1, 21, "repair", started_at=T0)
    values = {
        "end_time": T0 + timedelta(hours=1),
        "hours_worked": Decimal("1.00"),
        "status": "completed",
    }

    db = SessionLocal()
    try:
        store = EntryStore(db, 1)
        assert store.stop_if_active(entry.id, values) is True
        assert store.stop_if_active(entry.id, {**values, "hours_worked": Decimal("9.00")}) is False
        db.commit()
    finally:
        db.close()

    db = SessionLocal()
    try:
        assert db.query(LaborEntry).filter(LaborEntry.id == entry.id).one().hours_worked == Decimal("1.00")
    finally:
        db.close()
