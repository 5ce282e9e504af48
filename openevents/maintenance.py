"""Housekeeping jobs run by the scheduler or from the CLI."""

from __future__ import annotations

import logging
import time

from .database import engine

logger = logging.getLogger("uvicorn.error")


def vacuum_database() -> float:
    """Run ``VACUUM`` on SQLite databases and return the elapsed seconds."""
    if engine.dialect.name != "sqlite":
        logger.info("Skipping VACUUM on %s database", engine.dialect.name)
        return 0.0
    started = time.monotonic()
    with engine.connect() as connection:
        connection.execution_options(isolation_level="AUTOCOMMIT").exec_driver_sql(
            "VACUUM"
        )
    elapsed = time.monotonic() - started
    logger.info("SQLite VACUUM finished in %.2fs", elapsed)
    return elapsed
