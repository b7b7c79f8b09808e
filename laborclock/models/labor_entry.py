from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, Numeric, String, Text, text

from laborclock.database import Base

STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUSES = (STATUS_ACTIVE, STATUS_COMPLETED)


class LaborEntry(Base):
    __tablename__ = "labor_entries"

    __table_args__ = (
        CheckConstraint(
            "end_time IS NULL OR end_time > start_time",
            name="ck_labor_entries_end_after_start",
        ),
        CheckConstraint(
            "(status = 'active' AND end_time IS NULL) OR (status = 'completed' AND end_time IS NOT NULL)",
            name="ck_labor_entries_status_matches_end_time",
        ),
        CheckConstraint(
            "hours_worked IS NULL OR hours_worked >= 0",
            name="ck_labor_entries_hours_worked_nonnegative",
        ),
        CheckConstraint(
            "regular_rate IS NULL OR regular_rate >= 0",
            name="ck_labor_entries_regular_rate_nonnegative",
        ),
        CheckConstraint(
            "total_labor_cost IS NULL OR total_labor_cost >= 0",
            name="ck_labor_entries_total_labor_cost_nonnegative",
        ),
        Index(
            "uq_labor_entries_active",
            "company_id",
            "employee_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_labor_entries_company_work_order_start", "company_id", "work_order_id", "start_time"),
        Index("ix_labor_entries_company_employee_start", "company_id", "employee_id", "start_time"),
    )

    id = Column(String, primary_key=True, index=True)

    company_id = Column(Integer, nullable=False, index=True)

    # Weak references: ids plus cached display fields, no foreign keys.
    work_order_id = Column(Integer, nullable=True, index=True)
    work_order_number = Column(String, nullable=True)
    employee_id = Column(Integer, nullable=False, index=True)
    employee_name = Column(String, nullable=True)
    employee_code = Column(String, nullable=True)

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)

    hours_worked = Column(Numeric(10, 2), nullable=True)
    regular_rate = Column(Numeric(12, 2), nullable=True)
    total_labor_cost = Column(Numeric(12, 2), nullable=True)

    work_type = Column(String, nullable=False)
    task_description = Column(Text, nullable=True)

    status = Column(String, nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @property
    def cost_pending(self) -> bool:
        return self.status == STATUS_COMPLETED and self.total_labor_cost is None
