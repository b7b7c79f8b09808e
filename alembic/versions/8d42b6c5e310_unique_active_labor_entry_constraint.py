"""unique_active_labor_entry_constraint

Revision ID: 8d42b6c5e310
Revises: 3c1f0e7a9b21
Create Date: 2026-10-05 09:31:07.554120

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8d42b6c5e310"
down_revision: Union[str, Sequence[str], None] = "3c1f0e7a9b21"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Partial unique index; supported by both PostgreSQL and SQLite.
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_labor_entries_active
        ON labor_entries(company_id, employee_id)
        WHERE status = 'active';
        """
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("DROP INDEX IF EXISTS uq_labor_entries_active;")
