from laborclock.models.employee import Employee
from laborclock.models.labor_entry import LaborEntry

__all__ = [
    "Employee",
    "LaborEntry",
]
