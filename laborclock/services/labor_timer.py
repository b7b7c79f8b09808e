"""
Timer state machine.

Per employee: Idle (no active entry) -> Running (one active entry) -> the entry
is Completed and the employee is Idle again. No state is held here between
calls; every decision re-reads the Entry Store.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from laborclock.core.errors import ConflictError, InvalidStateError
from laborclock.database import session_scope
from laborclock.models.employee import Employee
from laborclock.models.labor_entry import STATUS_ACTIVE, STATUS_COMPLETED, LaborEntry
from laborclock.services.entry_store import EntryFilter, EntryStore
from laborclock.services.labor_calculator import (
    Number,
    compute_duration_and_cost,
    normalize_rate,
    to_naive_utc,
    utcnow,
)

logger = logging.getLogger(__name__)


def _lookup_employee(db: Session, company_id: int, employee_id: int) -> Optional[Employee]:
    return (
        db.query(Employee)
        .filter(
            Employee.company_id == int(company_id),
            Employee.id == int(employee_id),
        )
        .first()
    )


def start_timer(
    company_id: int,
    employee_id: int,
    work_type: str,
    *,
    work_order_id: Optional[int] = None,
    work_order_number: Optional[str] = None,
    task_description: Optional[str] = None,
    employee_name: Optional[str] = None,
    employee_code: Optional[str] = None,
    regular_rate: Optional[Number] = None,
    started_at: Optional[datetime] = None,
    db: Optional[Session] = None,
) -> LaborEntry:
    with session_scope(db) as session:
        store = EntryStore(session, company_id)

        active_entry = store.find_active_by_employee(employee_id)
        if active_entry is not None:
            logger.warning(
                "Timer start rejected; employee already has an active timer",
                extra={
                    "company_id": int(company_id),
                    "employee_id": int(employee_id),
                    "conflicting_entry_id": active_entry.id,
                },
            )
            raise ConflictError(
                employee_id=int(employee_id),
                conflicting_entry_id=active_entry.id,
                work_order_id=active_entry.work_order_id,
                work_order_number=active_entry.work_order_number,
            )

        if employee_name is None or employee_code is None:
            employee = _lookup_employee(session, company_id, employee_id)
            if employee is not None:
                employee_name = employee_name if employee_name is not None else employee.name
                employee_code = employee_code if employee_code is not None else employee.employee_code

        entry = store.create(
            {
                "work_order_id": work_order_id,
                "work_order_number": work_order_number,
                "employee_id": int(employee_id),
                "employee_name": employee_name,
                "employee_code": employee_code,
                "start_time": to_naive_utc(started_at) if started_at is not None else utcnow(),
                "end_time": None,
                "hours_worked": None,
                "regular_rate": normalize_rate(regular_rate),
                "total_labor_cost": None,
                "work_type": work_type,
                "task_description": task_description,
                "status": STATUS_ACTIVE,
            }
        )

        logger.info(
            "Timer started",
            extra={
                "company_id": int(company_id),
                "employee_id": int(employee_id),
                "entry_id": entry.id,
                "work_order_id": work_order_id,
            },
        )
        return entry


def _resolve_rate(
    session: Session,
    entry: LaborEntry,
    regular_rate: Optional[Number],
) -> Optional[Decimal]:
    if regular_rate is not None:
        return normalize_rate(regular_rate)
    if entry.regular_rate is not None:
        return entry.regular_rate

    employee = _lookup_employee(session, entry.company_id, entry.employee_id)
    if employee is not None and employee.hourly_rate is not None:
        return normalize_rate(employee.hourly_rate)
    return None


def stop_timer(
    company_id: int,
    entry_id: str,
    *,
    ended_at: Optional[datetime] = None,
    regular_rate: Optional[Number] = None,
    db: Optional[Session] = None,
) -> LaborEntry:
    """
    Complete an active entry. The rate is taken from the argument, else the
    rate captured on the entry, else the employee's current hourly rate; when
    none is known the cost stays pending (None).
    """
    with session_scope(db) as session:
        store = EntryStore(session, company_id)

        entry = store.require(entry_id)
        if entry.status != STATUS_ACTIVE:
            raise InvalidStateError(
                f"Labor entry {entry.id} is not running",
                entry_id=entry.id,
                status=entry.status,
            )

        end_time = to_naive_utc(ended_at) if ended_at is not None else utcnow()
        rate = _resolve_rate(session, entry, regular_rate)
        result = compute_duration_and_cost(entry.start_time, end_time, rate)

        applied = store.stop_if_active(
            entry.id,
            {
                "end_time": end_time,
                "hours_worked": result.hours,
                "regular_rate": rate,
                "total_labor_cost": result.cost,
                "status": STATUS_COMPLETED,
                "updated_at": utcnow(),
            },
        )

        store.refresh(entry)
        if not applied:
            # Lost the race to a concurrent stop; the stored row is untouched.
            raise InvalidStateError(
                f"Labor entry {entry.id} is not running",
                entry_id=entry.id,
                status=entry.status,
            )

        logger.info(
            "Timer stopped",
            extra={
                "company_id": int(company_id),
                "employee_id": entry.employee_id,
                "entry_id": entry.id,
                "hours_worked": str(entry.hours_worked),
                "cost_pending": entry.total_labor_cost is None,
            },
        )
        return entry


def get_active_timer(
    company_id: int,
    employee_id: int,
    *,
    db: Optional[Session] = None,
) -> Optional[LaborEntry]:
    with session_scope(db) as session:
        return EntryStore(session, company_id).find_active_by_employee(employee_id)


def list_active_timers(
    company_id: int,
    *,
    work_order_id: Optional[int] = None,
    db: Optional[Session] = None,
) -> list[LaborEntry]:
    with session_scope(db) as session:
        return EntryStore(session, company_id).query(
            EntryFilter(work_order_id=work_order_id, status=STATUS_ACTIVE)
        )
