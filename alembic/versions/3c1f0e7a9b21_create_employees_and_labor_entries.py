"""create employees and labor_entries

Revision ID: 3c1f0e7a9b21
Revises:
Create Date: 2026-10-05 09:12:44.201873

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c1f0e7a9b21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("employee_code", sa.String(), nullable=True),
        sa.Column("hourly_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_employees_id", "employees", ["id"])
    op.create_index("ix_employees_company_id", "employees", ["company_id"])

    op.create_table(
        "labor_entries",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("work_order_id", sa.Integer(), nullable=True),
        sa.Column("work_order_number", sa.String(), nullable=True),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("employee_name", sa.String(), nullable=True),
        sa.Column("employee_code", sa.String(), nullable=True),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("hours_worked", sa.Numeric(10, 2), nullable=True),
        sa.Column("regular_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_labor_cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("work_type", sa.String(), nullable=False),
        sa.Column("task_description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "end_time IS NULL OR end_time > start_time",
            name="ck_labor_entries_end_after_start",
        ),
        sa.CheckConstraint(
            "(status = 'active' AND end_time IS NULL) OR (status = 'completed' AND end_time IS NOT NULL)",
            name="ck_labor_entries_status_matches_end_time",
        ),
        sa.CheckConstraint(
            "hours_worked IS NULL OR hours_worked >= 0",
            name="ck_labor_entries_hours_worked_nonnegative",
        ),
        sa.CheckConstraint(
            "regular_rate IS NULL OR regular_rate >= 0",
            name="ck_labor_entries_regular_rate_nonnegative",
        ),
        sa.CheckConstraint(
            "total_labor_cost IS NULL OR total_labor_cost >= 0",
            name="ck_labor_entries_total_labor_cost_nonnegative",
        ),
    )
    op.create_index("ix_labor_entries_id", "labor_entries", ["id"])
    op.create_index("ix_labor_entries_company_id", "labor_entries", ["company_id"])
    op.create_index("ix_labor_entries_work_order_id", "labor_entries", ["work_order_id"])
    op.create_index("ix_labor_entries_employee_id", "labor_entries", ["employee_id"])
    op.create_index("ix_labor_entries_status", "labor_entries", ["status"])
    op.create_index(
        "ix_labor_entries_company_work_order_start",
        "labor_entries",
        ["company_id", "work_order_id", "start_time"],
    )
    op.create_index(
        "ix_labor_entries_company_employee_start",
        "labor_entries",
        ["company_id", "employee_id", "start_time"],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_labor_entries_company_employee_start", table_name="labor_entries")
    op.drop_index("ix_labor_entries_company_work_order_start", table_name="labor_entries")
    op.drop_index("ix_labor_entries_status", table_name="labor_entries")
    op.drop_index("ix_labor_entries_employee_id", table_name="labor_entries")
    op.drop_index("ix_labor_entries_work_order_id", table_name="labor_entries")
    op.drop_index("ix_labor_entries_company_id", table_name="labor_entries")
    op.drop_index("ix_labor_entries_id", table_name="labor_entries")
    op.drop_table("labor_entries")

    op.drop_index("ix_employees_company_id", table_name="employees")
    op.drop_index("ix_employees_id", table_name="employees")
    op.drop_table("employees")
