"""
Entry Store: the persistence contract the labor engine depends on, implemented
over a SQLAlchemy session.

A store is bound to one company and one session. It never commits; the caller
owns the transaction. Database failures surface as PersistenceError, except a
violation of the one-active-timer index on insert, which is reported as
ConflictError naming the entry that won.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator, Optional
from uuid import uuid4

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from laborclock.core.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from laborclock.models.labor_entry import STATUS_ACTIVE, LaborEntry

_MUTABLE_FIELDS = frozenset(
    {
        "work_order_id",
        "work_order_number",
        "employee_name",
        "employee_code",
        "start_time",
        "end_time",
        "hours_worked",
        "regular_rate",
        "total_labor_cost",
        "work_type",
        "task_description",
        "status",
    }
)


@dataclass(frozen=True)
class DateRange:
    start: Optional[datetime] = None
    end: Optional[datetime] = None  # exclusive


@dataclass(frozen=True)
class EntryFilter:
    work_order_id: Optional[int] = None
    employee_id: Optional[int] = None
    date_range: Optional[DateRange] = None
    status: Optional[str] = None
    newest_first: bool = False
    limit: Optional[int] = None
    offset: int = 0


class EntryStore:
    def __init__(self, db: Session, company_id: int):
        self.db = db
        self.company_id = int(company_id)

    @contextmanager
    def _guard(self, operation: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Entry store failed during {operation}",
                operation=operation,
                company_id=self.company_id,
                **context,
            ) from exc

    def _base_query(self):
        return self.db.query(LaborEntry).filter(LaborEntry.company_id == self.company_id)

    def create(self, values: dict[str, Any]) -> LaborEntry:
        """
        Insert one entry. On an active-timer uniqueness violation the session
        is rolled back so the winning entry can be read and reported.
        """
        entry = LaborEntry(id=str(uuid4()), company_id=self.company_id, **values)

        try:
            self.db.add(entry)
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            if values.get("status") == STATUS_ACTIVE:
                existing = self.find_active_by_employee(int(values["employee_id"]))
                if existing is not None:
                    raise ConflictError(
                        employee_id=existing.employee_id,
                        conflicting_entry_id=existing.id,
                        work_order_id=existing.work_order_id,
                        work_order_number=existing.work_order_number,
                    ) from exc
            raise PersistenceError(
                "Entry store rejected the new labor entry",
                operation="create",
                company_id=self.company_id,
                employee_id=values.get("employee_id"),
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(
                "Entry store failed during create",
                operation="create",
                company_id=self.company_id,
                employee_id=values.get("employee_id"),
            ) from exc

        return entry

    def get(self, entry_id: str) -> Optional[LaborEntry]:
        with self._guard("get", entry_id=entry_id):
            return self._base_query().filter(LaborEntry.id == str(entry_id)).first()

    def require(self, entry_id: str) -> LaborEntry:
        entry = self.get(entry_id)
        if entry is None:
            raise NotFoundError(entry_id=str(entry_id))
        return entry

    def refresh(self, entry: LaborEntry) -> LaborEntry:
        with self._guard("refresh", entry_id=entry.id):
            self.db.refresh(entry)
        return entry

    def update(self, entry_id: str, patch: dict[str, Any]) -> LaborEntry:
        unknown = set(patch) - _MUTABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields not updatable: {', '.join(sorted(unknown))}",
                entry_id=entry_id,
                fields=sorted(unknown),
            )

        entry = self.require(entry_id)
        with self._guard("update", entry_id=entry_id):
            for field, value in patch.items():
                setattr(entry, field, value)
            self.db.flush()
        return entry

    def stop_if_active(self, entry_id: str, values: dict[str, Any]) -> bool:
        """
        Compare-and-set: apply ``values`` only while the row is still active.
        Returns False when another caller got there first.
        """
        stmt = (
            update(LaborEntry)
            .where(
                LaborEntry.id == str(entry_id),
                LaborEntry.company_id == self.company_id,
                LaborEntry.status == STATUS_ACTIVE,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._guard("stop_if_active", entry_id=entry_id):
            result = self.db.execute(stmt)
        return result.rowcount == 1

    def find_active_by_employee(self, employee_id: int) -> Optional[LaborEntry]:
        with self._guard("find_active_by_employee", employee_id=employee_id):
            return (
                self._base_query()
                .filter(
                    LaborEntry.employee_id == int(employee_id),
                    LaborEntry.status == STATUS_ACTIVE,
                )
                .order_by(LaborEntry.start_time.desc())
                .first()
            )

    def query(self, f: EntryFilter) -> list[LaborEntry]:
        q = self._base_query()

        if f.work_order_id is not None:
            q = q.filter(LaborEntry.work_order_id == int(f.work_order_id))
        if f.employee_id is not None:
            q = q.filter(LaborEntry.employee_id == int(f.employee_id))
        if f.status is not None:
            q = q.filter(LaborEntry.status == str(f.status))
        if f.date_range is not None:
            if f.date_range.start is not None:
                q = q.filter(LaborEntry.start_time >= f.date_range.start)
            if f.date_range.end is not None:
                q = q.filter(LaborEntry.start_time < f.date_range.end)

        if f.newest_first:
            q = q.order_by(LaborEntry.start_time.desc(), LaborEntry.id.desc())
        else:
            q = q.order_by(LaborEntry.start_time.asc(), LaborEntry.id.asc())

        if f.offset:
            q = q.offset(int(f.offset))
        if f.limit is not None:
            q = q.limit(int(f.limit))

        with self._guard("query"):
            return q.all()

    def query_overlapping(
        self,
        employee_id: int,
        start: datetime,
        end: datetime,
        exclude_entry_id: Optional[str] = None,
    ) -> list[LaborEntry]:
        """Entries whose [start_time, end_time) intersects [start, end); active ones are open-ended."""
        q = self._base_query().filter(
            LaborEntry.employee_id == int(employee_id),
            LaborEntry.start_time < end,
            or_(LaborEntry.end_time.is_(None), LaborEntry.end_time > start),
        )
        if exclude_entry_id is not None:
            q = q.filter(LaborEntry.id != str(exclude_entry_id))

        with self._guard("query_overlapping", employee_id=employee_id):
            return q.order_by(LaborEntry.start_time.asc(), LaborEntry.id.asc()).all()

    def delete(self, entry_id: str) -> None:
        entry = self.require(entry_id)
        with self._guard("delete", entry_id=entry_id):
            self.db.delete(entry)
            self.db.flush()
