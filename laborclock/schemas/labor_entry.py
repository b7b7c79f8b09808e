from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EntryStatus = Literal["active", "completed"]


class StartTimerRequest(BaseModel):
    employee_id: int
    work_type: str = Field(min_length=1)
    work_order_id: Optional[int] = None
    work_order_number: Optional[str] = None
    task_description: Optional[str] = None
    employee_name: Optional[str] = None
    employee_code: Optional[str] = None
    regular_rate: Optional[Decimal] = Field(default=None, ge=0)
    started_at: Optional[datetime] = Field(
        default=None,
        description="If omitted, server uses current UTC time.",
    )


class StopTimerRequest(BaseModel):
    ended_at: Optional[datetime] = Field(
        default=None,
        description="If omitted, server uses current UTC time.",
    )
    regular_rate: Optional[Decimal] = Field(default=None, ge=0)


class ManualEntryRequest(BaseModel):
    employee_id: int
    start_time: datetime
    end_time: datetime
    work_type: str = Field(min_length=1)
    work_order_id: Optional[int] = None
    work_order_number: Optional[str] = None
    regular_rate: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="If omitted, the entry's cost stays pending.",
    )
    task_description: Optional[str] = None
    employee_name: Optional[str] = None
    employee_code: Optional[str] = None


class EditEntryRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    regular_rate: Optional[Decimal] = Field(default=None, ge=0)
    work_type: Optional[str] = None
    task_description: Optional[str] = None


class LaborEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: int
    work_order_id: Optional[int]
    work_order_number: Optional[str]
    employee_id: int
    employee_name: Optional[str]
    employee_code: Optional[str]
    start_time: datetime
    end_time: Optional[datetime]
    hours_worked: Optional[Decimal]
    regular_rate: Optional[Decimal]
    total_labor_cost: Optional[Decimal]
    cost_pending: bool
    work_type: str
    task_description: Optional[str]
    status: EntryStatus
    created_at: datetime
    updated_at: datetime


class ManualEntryResponse(LaborEntryResponse):
    overlapping_entry_ids: list[str] = []


class EmployeeTotals(BaseModel):
    employee_id: int
    employee_name: Optional[str]
    employee_code: Optional[str]
    entry_count: int
    total_hours: Decimal
    total_cost: Decimal
    pending_cost_count: int
    entry_ids: list[str]


class SummaryEntry(BaseModel):
    id: str
    employee_id: int
    employee_name: Optional[str]
    work_order_id: Optional[int]
    work_order_number: Optional[str]
    work_type: str
    task_description: Optional[str]
    start_time: datetime
    end_time: Optional[datetime]
    hours_worked: Optional[Decimal]
    regular_rate: Optional[Decimal]
    total_labor_cost: Optional[Decimal]
    cost_pending: bool


class ActiveTimerEstimate(BaseModel):
    id: str
    employee_id: int
    employee_name: Optional[str]
    work_order_id: Optional[int]
    work_order_number: Optional[str]
    start_time: datetime
    elapsed_hours: Decimal
    provisional: bool


class LaborSummaryResponse(BaseModel):
    company_id: int
    filters: dict[str, Any]
    total_hours: Decimal
    total_cost: Decimal
    entry_count: int
    pending_cost_count: int
    entries_pending_cost: list[str]
    unique_workers: int
    active_timer_count: int
    by_employee: list[EmployeeTotals]
    entries: list[SummaryEntry]
    active_timers: list[ActiveTimerEstimate]
