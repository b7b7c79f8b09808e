from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from laborclock.database import SessionLocal
from laborclock.models.labor_entry import LaborEntry

T0 = datetime(2026, 3, 2, 8, 0, 0)


def _entry(**overrides) -> LaborEntry:
    values = dict(
        id=str(uuid4()),
        company_id=1,
        employee_id=61,
        start_time=T0,
        end_time=T0 + timedelta(hours=1),
        hours_worked=Decimal("1.00"),
        work_type="repair",
        status="completed",
    )
    values.update(overrides)
    return LaborEntry(**values)


def _assert_rejected(row: LaborEntry) -> None:
    db = SessionLocal()
    try:
        db.add(row)
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()
    finally:
        db.close()


def test_check_constraint_blocks_end_before_start():
    _assert_rejected(_entry(end_time=T0 - timedelta(minutes=1)))


def test_check_constraint_blocks_zero_length_entry():
    _assert_rejected(_entry(end_time=T0))


def test_check_constraint_blocks_completed_without_end_time():
    _assert_rejected(_entry(end_time=None, hours_worked=None))


def test_check_constraint_blocks_active_with_end_time():
    _assert_rejected(_entry(status="active"))


def test_check_constraint_blocks_negative_total_labor_cost():
    _assert_rejected(_entry(regular_rate=Decimal("10.00"), total_labor_cost=Decimal("-1.00")))


def test_check_constraint_blocks_negative_regular_rate():
    _assert_rejected(_entry(regular_rate=Decimal("-5.00")))
