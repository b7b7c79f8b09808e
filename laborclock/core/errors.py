"""
Error taxonomy for the labor engine.

Every error carries a human-readable message plus a ``context`` dict with the
ids involved, so callers can explain a failure in domain terms.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional


class LaborEntryError(Exception):
    code = "labor_entry_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "context": self.context}


class ConflictError(LaborEntryError):
    """An employee already has a running timer."""

    code = "conflict"

    def __init__(
        self,
        *,
        employee_id: int,
        conflicting_entry_id: str,
        work_order_id: Optional[int] = None,
        work_order_number: Optional[str] = None,
    ):
        where = f" on work order {work_order_number}" if work_order_number else ""
        super().__init__(
            f"Employee {employee_id} already has an active timer{where} (entry {conflicting_entry_id})",
            employee_id=employee_id,
            conflicting_entry_id=conflicting_entry_id,
            work_order_id=work_order_id,
            work_order_number=work_order_number,
        )
        self.employee_id = employee_id
        self.conflicting_entry_id = conflicting_entry_id
        self.work_order_number = work_order_number


class NotFoundError(LaborEntryError):
    code = "not_found"

    def __init__(self, *, entry_id: str):
        super().__init__(f"Labor entry {entry_id} not found", entry_id=entry_id)
        self.entry_id = entry_id


class InvalidStateError(LaborEntryError):
    code = "invalid_state"

    def __init__(self, message: str, *, entry_id: str, status: str):
        super().__init__(message, entry_id=entry_id, status=status)
        self.entry_id = entry_id
        self.status = status


class InvalidRangeError(LaborEntryError):
    code = "invalid_range"

    def __init__(
        self,
        *,
        start_time: Optional[datetime],
        end_time: Optional[datetime],
        entry_id: Optional[str] = None,
    ):
        super().__init__(
            "End time must be after start time",
            start_time=None if start_time is None else start_time.isoformat(),
            end_time=None if end_time is None else end_time.isoformat(),
            entry_id=entry_id,
        )
        self.start_time = start_time
        self.end_time = end_time
        self.entry_id = entry_id


class ValidationError(LaborEntryError):
    code = "validation_error"


class PersistenceError(LaborEntryError):
    """The store was unreachable or rejected the write."""

    code = "persistence_error"
