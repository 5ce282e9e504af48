"""Database helpers for OpenEvents."""

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, update
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from .config import settings

DATABASE_URL = f"sqlite:///{settings.database_path}"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 15},
    future=True,
)
SessionLocal = scoped_session(
    sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
        expire_on_commit=False,
    )
)


@contextmanager
def get_session():
    """Context manager returning a SQLAlchemy session."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def lock_row(session: Session, model, row_id: int) -> None:
    """Take a write lock on one row until the current transaction ends.

    A no-op ``UPDATE`` locks the row on server databases and makes SQLite take
    its database write lock up front, so a following read-then-write cannot
    interleave with another writer.
    """
    session.execute(
        update(model)
        .where(model.id == row_id)
        .values(id=model.id)
        .execution_options(synchronize_session=False)
    )


def config_safe_url(bind: Engine) -> str:
    """Render the engine url for alembic's configparser-backed options."""
    return bind.url.render_as_string(hide_password=False).replace("%", "%%")
