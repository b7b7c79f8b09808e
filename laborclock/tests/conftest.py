import os
import subprocess
import sys
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url

_default_test_db = Path(tempfile.gettempdir()) / "laborclock_test.db"
TEST_DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{_default_test_db}")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from laborclock import database  # noqa: E402
from laborclock.models.employee import Employee  # noqa: E402


def _ensure_database_exists(database_url: str) -> None:
    url = make_url(database_url)

    if url.drivername.startswith("sqlite"):
        # start every session from an empty file
        if url.database and Path(url.database).exists():
            Path(url.database).unlink()
        return

    if not url.drivername.startswith("postgresql"):
        return

    db_name = url.database
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")

    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": db_name},
            ).scalar()
            if not exists:
                safe_db_name = db_name.replace('"', '""')
                conn.execute(text(f'CREATE DATABASE "{safe_db_name}"'))
    finally:
        admin_engine.dispose()


def _clear_tables() -> None:
    with database.engine.begin() as conn:
        for table in reversed(database.Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database() -> None:
    _ensure_database_exists(TEST_DATABASE_URL)

    env = os.environ.copy()
    env["DATABASE_URL"] = TEST_DATABASE_URL

    subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        check=True,
        cwd=Path(__file__).resolve().parents[2],
        env=env,
    )

    database.configure_database()


@pytest.fixture(scope="function", autouse=True)
def _clear_tables_between_tests():
    _clear_tables()
    yield
    _clear_tables()


@pytest.fixture
def employee_factory():
    counter = {"n": 0}

    def _create(
        company_id: int = 1,
        name: str = None,
        employee_code: str = None,
        hourly_rate=None,
    ) -> Employee:
        counter["n"] += 1
        db = database.SessionLocal()
        try:
            row = Employee(
                company_id=company_id,
                name=name or f"Employee {counter['n']}",
                employee_code=employee_code or f"E{counter['n']:03d}",
                hourly_rate=None if hourly_rate is None else Decimal(str(hourly_rate)),
                is_active=True,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return row
        finally:
            db.close()

    return _create
