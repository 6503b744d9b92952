"""Database utilities."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import get_settings


# largest value an SQLite INTEGER column can hold
MAX_INTEGER = 2**63 - 1


class Base(DeclarativeBase):
    """Base model for SQLAlchemy mappings."""


def create_db_engine(url: Optional[str] = None, timeout: Optional[float] = None) -> Engine:
    """Create an engine for *url*, defaulting to the configured SQLite file."""

    settings = get_settings()
    return create_engine(
        url or settings.database_url,
        connect_args={
            "check_same_thread": False,
            "timeout": settings.db_timeout if timeout is None else timeout,
        },
    )


_engine: Optional[Engine] = None

SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)


def get_engine() -> Engine:
    """Return a lazily created engine instance bound to ``SessionLocal``."""

    global _engine
    if _engine is None:
        _engine = create_db_engine()
        SessionLocal.configure(bind=_engine)
    return _engine


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    if factory is None:
        get_engine()
        factory = SessionLocal
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_database(engine: Optional[Engine] = None) -> None:
    """Ensure that the database schema exists."""

    from . import models  # noqa: F401 - ensure models are imported

    Base.metadata.create_all(bind=engine or get_engine())
