"""Schema migrations and the root admin token kept in ``meta``."""

from __future__ import annotations

import secrets
import shutil
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from . import database
from .config import settings
from .models import Meta
from .utils import utcnow

MIGRATIONS_DIR = Path(__file__).resolve().parent / "alembic"


def init_db() -> None:
    upgrade_database(make_backup=False)
    ensure_root_token()


def _alembic_config() -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", database.config_safe_url(database.engine))
    return config


def _backup_database_file() -> str | None:
    db_path = Path(settings.database_path)
    if not db_path.exists():
        return None
    backup_path = db_path.with_suffix(db_path.suffix + ".bak")
    shutil.copy(db_path, backup_path)
    return f"Backup created at {backup_path}"


def upgrade_database(*, make_backup: bool = True) -> list[str]:
    """Migrate to the latest revision and report what was done.

    Tables built by ``create_all`` without an ``alembic_version`` row are
    stamped as current instead of migrated.
    """
    actions: list[str] = []
    if make_backup:
        backup = _backup_database_file()
        if backup:
            actions.append(backup)

    tables = set(inspect(database.engine).get_table_names())
    config = _alembic_config()
    if "alembic_version" in tables:
        command.upgrade(config, "head")
        actions.append("Applied Alembic migrations to head")
    elif "events" in tables:
        command.stamp(config, "head")
        actions.append("Stamped existing database to Alembic head")
    else:
        command.upgrade(config, "head")
        actions.append("Ran Alembic upgrade to head (fresh database)")
    return actions


def _save_root_token(session: Session, token: str) -> str:
    session.merge(Meta(key=settings.root_token_key, value=token, updated_at=utcnow()))
    return token


def ensure_root_token() -> str:
    """Return the stored root token, generating one on first use."""
    with database.get_session() as session:
        stored = session.get(Meta, settings.root_token_key)
        if stored:
            return stored.value
        return _save_root_token(session, secrets.token_urlsafe(32))


def rotate_root_token() -> str:
    with database.get_session() as session:
        return _save_root_token(session, secrets.token_urlsafe(32))


def fetch_root_token() -> str:
    return ensure_root_token()
