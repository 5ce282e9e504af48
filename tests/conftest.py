"""Shared pytest fixtures for OpenEvents."""

from __future__ import annotations

import itertools
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from openevents import api, crud, database, lifecycle, maintenance
from openevents.clock import FixedClock
from openevents.models import Base
from openevents.stats import StatsClient

NOW = datetime(2030, 6, 1, 12, 0, 0)


@pytest.fixture(scope="session", autouse=True)
def configure_in_memory_db():
    """Reuse a single in-memory SQLite database for fast, isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    session_factory = scoped_session(
        sessionmaker(
            bind=engine,
            autoflush=False,
            autocommit=False,
            future=True,
            expire_on_commit=False,
        )
    )
    database.engine = engine
    database.SessionLocal = session_factory
    maintenance.engine = engine
    api.SessionLocal = session_factory
    Base.metadata.create_all(bind=engine)
    yield
    session_factory.remove()


@pytest.fixture(autouse=True)
def clean_database():
    """Reset all tables between tests to guarantee isolation."""

    database.SessionLocal.remove()
    Base.metadata.drop_all(bind=database.engine)
    Base.metadata.create_all(bind=database.engine)
    yield
    database.SessionLocal.remove()


@pytest.fixture()
def session():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture()
def clock():
    return FixedClock(NOW)


@pytest.fixture()
def offline_stats():
    """A statistics client with no service url: every lookup degrades."""
    return StatsClient("")


_emails = itertools.count(1)


@pytest.fixture()
def make_user(session):
    def _make(name: str = "Test User"):
        return crud.create_user(
            session, name=name, email=f"user{next(_emails)}@example.com"
        )

    return _make


@pytest.fixture()
def category(session):
    return crud.create_category(session, name="Concerts")


@pytest.fixture()
def make_event(session, clock, category, make_user):
    """Create an event; published unless told otherwise."""

    def _make(
        *,
        initiator=None,
        participant_limit: int = 0,
        request_moderation: bool = True,
        publish: bool = True,
        event_date: datetime | None = None,
        title: str = "Summer Jam",
    ):
        initiator = initiator or make_user("Organizer")
        event = lifecycle.create_event(
            session,
            initiator_id=initiator.id,
            title=title,
            annotation="An evening of live music in the park",
            description="Bring a blanket, food trucks on site, all ages welcome.",
            category_id=category.id,
            location=lifecycle.Location(lat=55.75, lon=37.61),
            event_date=event_date or clock.now() + timedelta(days=3),
            participant_limit=participant_limit,
            request_moderation=request_moderation,
            clock=clock,
        )
        if publish:
            lifecycle.update_event(
                session,
                event_id=event.id,
                actor=lifecycle.Actor.ADMIN,
                action=lifecycle.LifecycleAction(
                    lifecycle.Actor.ADMIN, lifecycle.StateAction.PUBLISH_EVENT
                ),
                clock=clock,
            )
        session.commit()
        return event

    return _make
