from __future__ import annotations

import types

from sqlalchemy import create_engine

from openevents import maintenance, scheduler
from openevents.models import Base


def test_vacuum_database_on_sqlite_file(monkeypatch, tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'vacuum.db'}", future=True)
    Base.metadata.create_all(bind=engine)
    monkeypatch.setattr(maintenance, "engine", engine)

    elapsed = maintenance.vacuum_database()

    assert elapsed >= 0
    engine.dispose()


def test_scheduler_disabled_by_settings(monkeypatch):
    monkeypatch.setattr(
        scheduler, "settings", types.SimpleNamespace(enable_scheduler=False)
    )
    assert scheduler.start_scheduler() is None


def test_scheduler_registers_vacuum_job(monkeypatch):
    monkeypatch.setattr(
        scheduler,
        "settings",
        types.SimpleNamespace(enable_scheduler=True, sqlite_vacuum_hours=6),
    )
    started = scheduler.start_scheduler()
    try:
        assert started is not None
        assert [job.id for job in started.get_jobs()] == ["vacuum"]
        assert scheduler.start_scheduler() is started
    finally:
        scheduler.stop_scheduler()
    assert not started.running
