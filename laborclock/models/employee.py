from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String

from laborclock.database import Base


class Employee(Base):
    """Read-only lookup for display fields and the current pay rate."""

    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    employee_code = Column(String, nullable=True)
    hourly_rate = Column(Numeric(12, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
