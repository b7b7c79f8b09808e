import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from laborclock.core.errors import PersistenceError

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()

DATABASE_URL = ""
engine = None
_configured_database_url = None


def _get_database_url() -> str:
    return os.getenv("DATABASE_URL", "postgresql://localhost/laborclock")


def _engine_kwargs(database_url: str) -> dict:
    # SQLite connections are shared across the TestClient's worker thread.
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def configure_database() -> None:
    global DATABASE_URL, engine, _configured_database_url

    database_url = _get_database_url()

    if engine is not None and _configured_database_url == database_url:
        return

    if engine is not None:
        engine.dispose()

    engine = create_engine(database_url, **_engine_kwargs(database_url))
    SessionLocal.configure(bind=engine)
    DATABASE_URL = database_url
    _configured_database_url = database_url


configure_database()


@contextmanager
def session_scope(db: Optional[Session] = None) -> Iterator[Session]:
    """
    If db is provided, the block will NOT commit/close. Caller owns the transaction.
    If db is None, a session is opened, committed on success and rolled back on error.
    """
    owns_db = db is None
    if owns_db:
        configure_database()
        db = SessionLocal()

    try:
        yield db
        if owns_db:
            try:
                db.commit()
            except SQLAlchemyError as exc:
                raise PersistenceError("Commit failed", operation="commit") from exc
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()
