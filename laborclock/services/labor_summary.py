from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from laborclock.database import session_scope
from laborclock.models.labor_entry import STATUS_ACTIVE, STATUS_COMPLETED, LaborEntry
from laborclock.services.entry_store import DateRange, EntryFilter, EntryStore
from laborclock.services.labor_calculator import elapsed_hours, to_naive_utc, utcnow

ZERO = Decimal("0.00")


@dataclass
class _EmployeeTotals:
    employee_id: int
    employee_name: Optional[str] = None
    employee_code: Optional[str] = None
    entry_count: int = 0
    total_hours: Decimal = ZERO
    total_cost: Decimal = ZERO
    pending_cost_count: int = 0
    entry_ids: list[str] = field(default_factory=list)

    def sort_key(self):
        name = self.employee_name
        return (name is None, (name or "").casefold(), self.employee_id)

    def as_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "employee_code": self.employee_code,
            "entry_count": self.entry_count,
            "total_hours": self.total_hours,
            "total_cost": self.total_cost,
            "pending_cost_count": self.pending_cost_count,
            "entry_ids": list(self.entry_ids),
        }


def _entry_dict(entry: LaborEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "employee_id": entry.employee_id,
        "employee_name": entry.employee_name,
        "work_order_id": entry.work_order_id,
        "work_order_number": entry.work_order_number,
        "work_type": entry.work_type,
        "task_description": entry.task_description,
        "start_time": entry.start_time,
        "end_time": entry.end_time,
        "hours_worked": entry.hours_worked,
        "regular_rate": entry.regular_rate,
        "total_labor_cost": entry.total_labor_cost,
        "cost_pending": entry.total_labor_cost is None,
    }


def summarize_entries(entries: list[LaborEntry], *, now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Totals over completed entries. Cost-pending entries add hours but never
    cost; active entries are reported separately with a provisional elapsed
    time and are excluded from every total.
    """
    now = to_naive_utc(now) if now is not None else utcnow()

    completed = sorted(
        (e for e in entries if e.status == STATUS_COMPLETED),
        key=lambda e: (e.start_time, e.id),
    )
    active = sorted(
        (e for e in entries if e.status == STATUS_ACTIVE),
        key=lambda e: (e.start_time, e.id),
    )

    total_hours = ZERO
    total_cost = ZERO
    pending: list[str] = []
    by_emp: dict[int, _EmployeeTotals] = {}

    for e in completed:
        totals = by_emp.get(e.employee_id)
        if totals is None:
            totals = by_emp[e.employee_id] = _EmployeeTotals(employee_id=e.employee_id)
        # keep the most recent cached display fields
        if e.employee_name is not None:
            totals.employee_name = e.employee_name
        if e.employee_code is not None:
            totals.employee_code = e.employee_code

        hours = e.hours_worked if e.hours_worked is not None else ZERO
        totals.entry_count += 1
        totals.total_hours += hours
        totals.entry_ids.append(e.id)
        total_hours += hours

        if e.total_labor_cost is None:
            totals.pending_cost_count += 1
            pending.append(e.id)
        else:
            totals.total_cost += e.total_labor_cost
            total_cost += e.total_labor_cost

    workers = set(by_emp) | {e.employee_id for e in active}

    return {
        "total_hours": total_hours,
        "total_cost": total_cost,
        "entry_count": len(completed),
        "pending_cost_count": len(pending),
        "entries_pending_cost": pending,
        "unique_workers": len(workers),
        "active_timer_count": len(active),
        "by_employee": [t.as_dict() for t in sorted(by_emp.values(), key=_EmployeeTotals.sort_key)],
        "entries": [_entry_dict(e) for e in completed],
        "active_timers": [
            {
                "id": e.id,
                "employee_id": e.employee_id,
                "employee_name": e.employee_name,
                "work_order_id": e.work_order_id,
                "work_order_number": e.work_order_number,
                "start_time": e.start_time,
                "elapsed_hours": elapsed_hours(e.start_time, now),
                "provisional": True,
            }
            for e in active
        ],
    }


def summarize(
    company_id: int,
    *,
    work_order_id: Optional[int] = None,
    employee_id: Optional[int] = None,
    date_start: Optional[datetime] = None,
    date_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
    db: Optional[Session] = None,
) -> dict[str, Any]:
    """
    Read-only labor summary.

    Semantics:
      date_start <= start_time < date_end (either bound optional)
    Grouping:
      employee_id, ordered by employee name then id
    """
    date_range = None
    if date_start is not None or date_end is not None:
        date_range = DateRange(
            start=None if date_start is None else to_naive_utc(date_start),
            end=None if date_end is None else to_naive_utc(date_end),
        )

    with session_scope(db) as session:
        entries = EntryStore(session, company_id).query(
            EntryFilter(
                work_order_id=work_order_id,
                employee_id=employee_id,
                date_range=date_range,
            )
        )

    summary = summarize_entries(entries, now=now)
    summary.update(
        {
            "company_id": int(company_id),
            "filters": {
                "work_order_id": work_order_id,
                "employee_id": employee_id,
                "date_start": None if date_range is None or date_range.start is None else date_range.start.isoformat(),
                "date_end": None if date_range is None or date_range.end is None else date_range.end.isoformat(),
            },
        }
    )
    return summary
