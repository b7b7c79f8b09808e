from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from laborclock.core.errors import ConflictError, InvalidRangeError, InvalidStateError, NotFoundError
from laborclock.database import SessionLocal
from laborclock.models.labor_entry import LaborEntry
from laborclock.services import labor_timer

T0 = datetime(2026, 3, 2, 8, 0, 0)


def _fetch(entry_id: str) -> LaborEntry:
    db = SessionLocal()
    try:
        row = db.query(LaborEntry).filter(LaborEntry.id == entry_id).first()
        assert row is not None
        return row
    finally:
        db.close()


def _count_active(company_id: int, employee_id: int) -> int:
    db = SessionLocal()
    try:
        return (
            db.query(LaborEntry)
            .filter(
                LaborEntry.company_id == company_id,
                LaborEntry.employee_id == employee_id,
                LaborEntry.status == "active",
            )
            .count()
        )
    finally:
        db.close()


def test_start_timer_creates_active_entry():
    row = labor_timer.start_timer(
        1,
        11,
        "repair",
        work_order_id=42,
        work_order_number="WO-42",
        started_at=T0,
    )

    assert row.status == "active"
    assert row.start_time == T0
    assert row.end_time is None
    assert row.hours_worked is None
    assert row.total_labor_cost is None
    assert _count_active(1, 11) == 1


def test_second_start_conflicts_and_names_existing_entry():
    first = labor_timer.start_timer(1, 11, "repair", work_order_id=42, work_order_number="WO-42", started_at=T0)

    with pytest.raises(ConflictError) as exc:
        labor_timer.start_timer(1, 11, "inspection", work_order_id=99, started_at=T0 + timedelta(minutes=1))

    assert exc.value.conflicting_entry_id == first.id
    assert exc.value.context["employee_id"] == 11
    assert "WO-42" in exc.value.message
    assert _count_active(1, 11) == 1


def test_active_timer_is_per_company():
    labor_timer.start_timer(1, 11, "repair", started_at=T0)
    other = labor_timer.start_timer(2, 11, "repair", started_at=T0)

    assert other.company_id == 2
    assert _count_active(1, 11) == 1
    assert _count_active(2, 11) == 1


def test_different_employees_run_in_parallel_on_same_work_order():
    labor_timer.start_timer(1, 11, "repair", work_order_id=42, started_at=T0)
    labor_timer.start_timer(1, 12, "repair", work_order_id=42, started_at=T0)

    timers = labor_timer.list_active_timers(1, work_order_id=42)
    assert sorted(t.employee_id for t in timers) == [11, 12]
    assert labor_timer.list_active_timers(1, work_order_id=7) == []


def test_stop_timer_computes_hours_and_cost():
    entry = labor_timer.start_timer(1, 11, "repair", work_order_id=42, started_at=T0)

    stopped = labor_timer.stop_timer(
        1,
        entry.id,
        ended_at=T0 + timedelta(minutes=90),
        regular_rate=Decimal("25.00"),
    )

    assert stopped.status == "completed"
    assert stopped.hours_worked == Decimal("1.50")
    assert stopped.total_labor_cost == Decimal("37.50")
    assert _count_active(1, 11) == 0

    row = _fetch(entry.id)
    assert row.status == "completed"
    assert row.start_time == T0
    assert row.end_time >= row.start_time
    assert row.regular_rate == Decimal("25.00")


def test_stop_uses_rate_captured_at_start():
    entry = labor_timer.start_timer(1, 11, "pm", started_at=T0, regular_rate="30")

    stopped = labor_timer.stop_timer(1, entry.id, ended_at=T0 + timedelta(hours=2))
    assert stopped.total_labor_cost == Decimal("60.00")


def test_stop_falls_back_to_employee_rate(employee_factory):
    emp = employee_factory(company_id=1, name="Dana Reyes", employee_code="MT-7", hourly_rate="32.50")

    entry = labor_timer.start_timer(1, emp.id, "repair", started_at=T0)
    assert entry.employee_name == "Dana Reyes"
    assert entry.employee_code == "MT-7"

    stopped = labor_timer.stop_timer(1, entry.id, ended_at=T0 + timedelta(hours=1))
    assert stopped.regular_rate == Decimal("32.50")
    assert stopped.total_labor_cost == Decimal("32.50")


def test_stop_without_any_rate_leaves_cost_pending():
    entry = labor_timer.start_timer(1, 11, "repair", started_at=T0)

    stopped = labor_timer.stop_timer(1, entry.id, ended_at=T0 + timedelta(minutes=30))
    assert stopped.hours_worked == Decimal("0.50")
    assert stopped.total_labor_cost is None
    assert stopped.cost_pending is True


def test_stop_twice_fails_second_time_without_changing_entry():
    entry = labor_timer.start_timer(1, 11, "repair", started_at=T0)
    labor_timer.stop_timer(1, entry.id, ended_at=T0 + timedelta(hours=1), regular_rate=20)
    before = _fetch(entry.id)

    with pytest.raises(InvalidStateError) as exc:
        labor_timer.stop_timer(1, entry.id, ended_at=T0 + timedelta(hours=3), regular_rate=99)

    assert exc.value.status == "completed"
    after = _fetch(entry.id)
    assert after.end_time == before.end_time
    assert after.hours_worked == before.hours_worked == Decimal("1.00")
    assert after.total_labor_cost == before.total_labor_cost == Decimal("20.00")
    assert after.updated_at == before.updated_at


def test_stop_unknown_entry_is_not_found():
    with pytest.raises(NotFoundError):
        labor_timer.stop_timer(1, "does-not-exist")


def test_stop_entry_of_other_company_is_not_found():
    entry = labor_timer.start_timer(1, 11, "repair", started_at=T0)
    with pytest.raises(NotFoundError):
        labor_timer.stop_timer(2, entry.id)


def test_stop_before_start_is_invalid_range_and_keeps_timer_running():
    entry = labor_timer.start_timer(1, 11, "repair", started_at=T0)

    with pytest.raises(InvalidRangeError):
        labor_timer.stop_timer(1, entry.id, ended_at=T0 - timedelta(minutes=1))

    assert _fetch(entry.id).status == "active"


def test_employee_can_start_again_after_stop():
    first = labor_timer.start_timer(1, 11, "repair", started_at=T0)
    labor_timer.stop_timer(1, first.id, ended_at=T0 + timedelta(hours=1))

    second = labor_timer.start_timer(1, 11, "inspection", started_at=T0 + timedelta(hours=2))
    assert second.id != first.id
    assert labor_timer.get_active_timer(1, 11).id == second.id


def test_get_active_timer_reads_store_each_time():
    assert labor_timer.get_active_timer(1, 11) is None

    entry = labor_timer.start_timer(1, 11, "repair", started_at=T0)
    assert labor_timer.get_active_timer(1, 11).id == entry.id

    labor_timer.stop_timer(1, entry.id, ended_at=T0 + timedelta(minutes=5))
    assert labor_timer.get_active_timer(1, 11) is None


def test_caller_owned_session_is_not_committed():
    db = SessionLocal()
    try:
        labor_timer.start_timer(1, 11, "repair", started_at=T0, db=db)
        db.rollback()
    finally:
        db.close()

    assert _count_active(1, 11) == 0
