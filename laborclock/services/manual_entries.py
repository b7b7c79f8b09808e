from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from laborclock.core.errors import InvalidRangeError, InvalidStateError, ValidationError
from laborclock.database import session_scope
from laborclock.models.labor_entry import STATUS_COMPLETED, LaborEntry
from laborclock.services.entry_store import EntryStore
from laborclock.services.labor_calculator import (
    Number,
    compute_duration_and_cost,
    normalize_rate,
    to_naive_utc,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"start_time", "end_time", "regular_rate", "work_type", "task_description"})
RECOMPUTE_FIELDS = frozenset({"start_time", "end_time", "regular_rate"})


def _warn_on_overlap(store: EntryStore, entry: LaborEntry) -> list[LaborEntry]:
    overlaps = store.query_overlapping(
        entry.employee_id,
        entry.start_time,
        entry.end_time,
        exclude_entry_id=entry.id,
    )
    if overlaps:
        logger.warning(
            "Labor entry overlaps existing entries for employee",
            extra={
                "company_id": store.company_id,
                "employee_id": entry.employee_id,
                "entry_id": entry.id,
                "overlapping_entry_ids": [o.id for o in overlaps],
            },
        )
    return overlaps


def find_overlapping_entries(
    company_id: int,
    employee_id: int,
    start_time: datetime,
    end_time: datetime,
    *,
    exclude_entry_id: Optional[str] = None,
    db: Optional[Session] = None,
) -> list[LaborEntry]:
    with session_scope(db) as session:
        return EntryStore(session, company_id).query_overlapping(
            employee_id,
            to_naive_utc(start_time),
            to_naive_utc(end_time),
            exclude_entry_id=exclude_entry_id,
        )


def record_manual_entry(
    company_id: int,
    employee_id: int,
    start_time: datetime,
    end_time: datetime,
    work_type: str,
    *,
    work_order_id: Optional[int] = None,
    work_order_number: Optional[str] = None,
    regular_rate: Optional[Number] = None,
    task_description: Optional[str] = None,
    employee_name: Optional[str] = None,
    employee_code: Optional[str] = None,
    db: Optional[Session] = None,
) -> tuple[LaborEntry, list[LaborEntry]]:
    """
    Record a finished stretch of work directly as a completed entry.

    Overlap with the employee's other entries is allowed but logged as a
    warning; the single-active-timer rule does not apply since the entry is
    never active. Returns the entry and the entries it overlaps.
    """
    start = to_naive_utc(start_time)
    end = to_naive_utc(end_time)
    rate = normalize_rate(regular_rate)
    result = compute_duration_and_cost(start, end, rate)

    with session_scope(db) as session:
        store = EntryStore(session, company_id)
        entry = store.create(
            {
                "work_order_id": work_order_id,
                "work_order_number": work_order_number,
                "employee_id": int(employee_id),
                "employee_name": employee_name,
                "employee_code": employee_code,
                "start_time": start,
                "end_time": end,
                "hours_worked": result.hours,
                "regular_rate": rate,
                "total_labor_cost": result.cost,
                "work_type": work_type,
                "task_description": task_description,
                "status": STATUS_COMPLETED,
            }
        )
        overlaps = _warn_on_overlap(store, entry)

        logger.info(
            "Manual labor entry added",
            extra={
                "company_id": int(company_id),
                "employee_id": int(employee_id),
                "entry_id": entry.id,
                "hours_worked": str(result.hours),
                "cost_pending": result.cost is None,
                "overlap_count": len(overlaps),
            },
        )
        return entry, overlaps


def add_manual_entry(
    company_id: int,
    employee_id: int,
    start_time: datetime,
    end_time: datetime,
    work_type: str,
    **kwargs: Any,
) -> LaborEntry:
    entry, _overlaps = record_manual_entry(company_id, employee_id, start_time, end_time, work_type, **kwargs)
    return entry


def edit_entry(
    company_id: int,
    entry_id: str,
    patch: dict[str, Any],
    *,
    db: Optional[Session] = None,
) -> LaborEntry:
    """
    Correct an entry. Times and rate can only change on a completed entry and
    any such change recomputes hours and cost; classification fields can be
    changed on any entry.
    """
    unknown = set(patch) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields not editable: {', '.join(sorted(unknown))}",
            entry_id=entry_id,
            fields=sorted(unknown),
        )

    with session_scope(db) as session:
        store = EntryStore(session, company_id)
        entry = store.require(entry_id)

        changes: dict[str, Any] = {k: patch[k] for k in ("work_type", "task_description") if k in patch}
        if "work_type" in changes and not changes["work_type"]:
            raise ValidationError("work_type must not be empty", entry_id=entry.id, field="work_type")

        recompute = RECOMPUTE_FIELDS & set(patch)
        if recompute:
            if entry.status != STATUS_COMPLETED:
                raise InvalidStateError(
                    f"Labor entry {entry.id} is still running; stop it before correcting times or rate",
                    entry_id=entry.id,
                    status=entry.status,
                )

            if "start_time" in patch:
                if patch["start_time"] is None:
                    raise InvalidRangeError(start_time=None, end_time=entry.end_time, entry_id=entry.id)
                start = to_naive_utc(patch["start_time"])
            else:
                start = entry.start_time
            if "end_time" in patch:
                if patch["end_time"] is None:
                    raise InvalidRangeError(start_time=start, end_time=None, entry_id=entry.id)
                end = to_naive_utc(patch["end_time"])
            else:
                end = entry.end_time
            rate = normalize_rate(patch["regular_rate"]) if "regular_rate" in patch else entry.regular_rate

            if end <= start:
                raise InvalidRangeError(start_time=start, end_time=end, entry_id=entry.id)
            result = compute_duration_and_cost(start, end, rate)

            changes.update(
                {
                    "start_time": start,
                    "end_time": end,
                    "regular_rate": rate,
                    "hours_worked": result.hours,
                    "total_labor_cost": result.cost,
                }
            )

        if not changes:
            return entry

        entry = store.update(entry.id, changes)
        if recompute:
            _warn_on_overlap(store, entry)

        logger.info(
            "Labor entry edited",
            extra={
                "company_id": int(company_id),
                "entry_id": entry.id,
                "fields": sorted(patch),
            },
        )
        return entry


def delete_entry(
    company_id: int,
    entry_id: str,
    *,
    db: Optional[Session] = None,
) -> None:
    """Hard delete; works on running timers too, discarding them without cost."""
    with session_scope(db) as session:
        store = EntryStore(session, company_id)
        entry = store.require(entry_id)
        status = entry.status
        store.delete(entry.id)

        logger.info(
            "Labor entry deleted",
            extra={
                "company_id": int(company_id),
                "entry_id": str(entry_id),
                "status": status,
            },
        )
