"""
Duration and cost arithmetic for labor entries.

All values are Decimals. Hours are rounded to HOURS_PRECISION first and cost
is computed from the rounded hours, so a stored entry always satisfies
``total_labor_cost == round(hours_worked * regular_rate, 2)``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from laborclock.core.errors import InvalidRangeError, ValidationError

HOURS_PRECISION = Decimal("0.01")
COST_PRECISION = Decimal("0.01")
# Rates are stored in whole cents; sub-cent input is rounded, not rejected.
RATE_PRECISION = Decimal("0.01")
ROUNDING = ROUND_HALF_UP
SECONDS_PER_HOUR = Decimal(3600)

Number = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class DurationAndCost:
    hours: Decimal
    cost: Optional[Decimal]  # None => cost pending, never zero


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken as UTC already; aware ones are converted."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_decimal(value: Optional[Number], field: str = "value") -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, float):
        # str() first so 25.1 stays 25.1 rather than its binary expansion
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"{field} is not a number", field=field, value=str(value)) from exc
    if not result.is_finite():
        raise ValidationError(f"{field} is not a finite number", field=field, value=str(value))
    return result


def normalize_rate(rate: Optional[Number]) -> Optional[Decimal]:
    """Validate an hourly rate and round it to RATE_PRECISION (18.125 -> 18.13)."""
    result = to_decimal(rate, field="regular_rate")
    if result is None:
        return None
    if result < 0:
        raise ValidationError("regular_rate must not be negative", field="regular_rate", value=str(result))
    return result.quantize(RATE_PRECISION, rounding=ROUNDING)


def compute_hours(start: datetime, end: datetime) -> Decimal:
    start = to_naive_utc(start)
    end = to_naive_utc(end)
    if end <= start:
        raise InvalidRangeError(start_time=start, end_time=end)

    delta = end - start
    # timedelta arithmetic in integer microseconds avoids float drift
    micros = (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds
    seconds = Decimal(micros) / Decimal(1_000_000)
    return (seconds / SECONDS_PER_HOUR).quantize(HOURS_PRECISION, rounding=ROUNDING)


def compute_cost(hours: Decimal, rate: Optional[Number]) -> Optional[Decimal]:
    normalized = normalize_rate(rate)
    if normalized is None:
        return None
    return (hours * normalized).quantize(COST_PRECISION, rounding=ROUNDING)


def compute_duration_and_cost(
    start: datetime,
    end: datetime,
    rate: Optional[Number],
) -> DurationAndCost:
    hours = compute_hours(start, end)
    return DurationAndCost(hours=hours, cost=compute_cost(hours, rate))


def elapsed_hours(start: datetime, now: Optional[datetime] = None) -> Decimal:
    """Provisional running time for an active timer; never negative."""
    now = to_naive_utc(now) if now is not None else utcnow()
    start = to_naive_utc(start)
    if now <= start:
        return Decimal("0.00")
    return compute_hours(start, now)


def format_hours(hours: Number) -> str:
    value = to_decimal(hours, field="hours")
    total_minutes = int((value * 60).quantize(Decimal(1), rounding=ROUNDING))
    if total_minutes < 60:
        return f"{total_minutes}m"
    h, m = divmod(total_minutes, 60)
    return f"{h}h {m}m" if m else f"{h}h"
