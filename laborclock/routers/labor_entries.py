from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from laborclock.core.errors import (
    ConflictError,
    InvalidRangeError,
    InvalidStateError,
    LaborEntryError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from laborclock.database import SessionLocal, configure_database
from laborclock.deps.tenant import require_company
from laborclock.models.labor_entry import LaborEntry
from laborclock.schemas.labor_entry import (
    EditEntryRequest,
    EntryStatus,
    LaborEntryResponse,
    LaborSummaryResponse,
    ManualEntryRequest,
    ManualEntryResponse,
    StartTimerRequest,
    StopTimerRequest,
)
from laborclock.services import labor_summary, labor_timer, manual_entries
from laborclock.services.entry_store import DateRange, EntryFilter, EntryStore
from laborclock.services.labor_calculator import to_naive_utc

router = APIRouter(
    prefix="/labor_entries",
    tags=["Labor Entries"],
)

_STATUS_CODES = (
    (ConflictError, 409),
    (NotFoundError, 404),
    (InvalidStateError, 409),
    (InvalidRangeError, 422),
    (ValidationError, 422),
    (PersistenceError, 503),
)


def _http_error(exc: LaborEntryError) -> HTTPException:
    status_code = 400
    for error_type, code in _STATUS_CODES:
        if isinstance(exc, error_type):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail=exc.to_dict())


def _open_db() -> Session:
    configure_database()
    return SessionLocal()


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise PersistenceError("Commit failed", operation="commit") from exc


def _to_response(entry: LaborEntry) -> LaborEntryResponse:
    return LaborEntryResponse.model_validate(entry)


@router.get("", response_model=list[LaborEntryResponse])
def list_labor_entries(
    company_id: int = Depends(require_company),
    employee_id: Optional[int] = None,
    work_order_id: Optional[int] = None,
    status: Optional[EntryStatus] = None,
    started_at_from: Optional[datetime] = None,
    started_at_to: Optional[datetime] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    date_range = None
    if started_at_from is not None or started_at_to is not None:
        date_range = DateRange(
            start=None if started_at_from is None else to_naive_utc(started_at_from),
            end=None if started_at_to is None else to_naive_utc(started_at_to),
        )

    db = _open_db()
    try:
        rows = EntryStore(db, company_id).query(
            EntryFilter(
                work_order_id=work_order_id,
                employee_id=employee_id,
                status=status,
                date_range=date_range,
                newest_first=True,
                limit=limit,
                offset=offset,
            )
        )
        return [_to_response(r) for r in rows]
    except LaborEntryError as exc:
        raise _http_error(exc) from exc
    finally:
        db.close()


@router.post("/start", response_model=LaborEntryResponse)
def start_timer_endpoint(
    payload: StartTimerRequest,
    company_id: int = Depends(require_company),
):
    db = _open_db()
    try:
        entry = labor_timer.start_timer(
            company_id,
            payload.employee_id,
            payload.work_type,
            work_order_id=payload.work_order_id,
            work_order_number=payload.work_order_number,
            task_description=payload.task_description,
            employee_name=payload.employee_name,
            employee_code=payload.employee_code,
            regular_rate=payload.regular_rate,
            started_at=payload.started_at,
            db=db,
        )
        _commit(db)
        return _to_response(entry)
    except LaborEntryError as exc:
        db.rollback()
        raise _http_error(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.post("/{entry_id}/stop", response_model=LaborEntryResponse)
def stop_timer_endpoint(
    entry_id: str,
    payload: Optional[StopTimerRequest] = None,
    company_id: int = Depends(require_company),
):
    payload = payload or StopTimerRequest()

    db = _open_db()
    try:
        entry = labor_timer.stop_timer(
            company_id,
            entry_id,
            ended_at=payload.ended_at,
            regular_rate=payload.regular_rate,
            db=db,
        )
        _commit(db)
        return _to_response(entry)
    except LaborEntryError as exc:
        db.rollback()
        raise _http_error(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("/active", response_model=LaborEntryResponse)
def get_active_timer_endpoint(
    employee_id: int,
    company_id: int = Depends(require_company),
):
    db = _open_db()
    try:
        entry = labor_timer.get_active_timer(company_id, employee_id, db=db)
        if entry is None:
            raise HTTPException(status_code=404, detail="No active timer")
        return _to_response(entry)
    except LaborEntryError as exc:
        raise _http_error(exc) from exc
    finally:
        db.close()


@router.get("/active_timers", response_model=list[LaborEntryResponse])
def list_active_timers_endpoint(
    work_order_id: Optional[int] = None,
    company_id: int = Depends(require_company),
):
    db = _open_db()
    try:
        rows = labor_timer.list_active_timers(company_id, work_order_id=work_order_id, db=db)
        return [_to_response(r) for r in rows]
    except LaborEntryError as exc:
        raise _http_error(exc) from exc
    finally:
        db.close()


@router.post("/manual", response_model=ManualEntryResponse)
def add_manual_entry_endpoint(
    payload: ManualEntryRequest,
    company_id: int = Depends(require_company),
):
    db = _open_db()
    try:
        entry, overlaps = manual_entries.record_manual_entry(
            company_id,
            payload.employee_id,
            payload.start_time,
            payload.end_time,
            payload.work_type,
            work_order_id=payload.work_order_id,
            work_order_number=payload.work_order_number,
            regular_rate=payload.regular_rate,
            task_description=payload.task_description,
            employee_name=payload.employee_name,
            employee_code=payload.employee_code,
            db=db,
        )
        _commit(db)
        return ManualEntryResponse(
            **_to_response(entry).model_dump(),
            overlapping_entry_ids=[o.id for o in overlaps],
        )
    except LaborEntryError as exc:
        db.rollback()
        raise _http_error(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("/summary", response_model=LaborSummaryResponse)
def get_labor_summary(
    company_id: int = Depends(require_company),
    work_order_id: Optional[int] = None,
    employee_id: Optional[int] = None,
    date_start: Optional[datetime] = None,
    date_end: Optional[datetime] = None,
):
    db = _open_db()
    try:
        return labor_summary.summarize(
            company_id,
            work_order_id=work_order_id,
            employee_id=employee_id,
            date_start=date_start,
            date_end=date_end,
            db=db,
        )
    except LaborEntryError as exc:
        raise _http_error(exc) from exc
    finally:
        db.close()


@router.get("/{entry_id}", response_model=LaborEntryResponse)
def get_labor_entry(
    entry_id: str,
    company_id: int = Depends(require_company),
):
    db = _open_db()
    try:
        return _to_response(EntryStore(db, company_id).require(entry_id))
    except LaborEntryError as exc:
        raise _http_error(exc) from exc
    finally:
        db.close()


@router.patch("/{entry_id}", response_model=LaborEntryResponse)
def edit_labor_entry(
    entry_id: str,
    payload: EditEntryRequest,
    company_id: int = Depends(require_company),
):
    db = _open_db()
    try:
        entry = manual_entries.edit_entry(
            company_id,
            entry_id,
            payload.model_dump(exclude_unset=True),
            db=db,
        )
        _commit(db)
        return _to_response(entry)
    except LaborEntryError as exc:
        db.rollback()
        raise _http_error(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.delete("/{entry_id}", status_code=204)
def delete_labor_entry(
    entry_id: str,
    company_id: int = Depends(require_company),
):
    db = _open_db()
    try:
        manual_entries.delete_entry(company_id, entry_id, db=db)
        _commit(db)
        return Response(status_code=204)
    except LaborEntryError as exc:
        db.rollback()
        raise _http_error(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
