"""Concurrent admission and resolution against a file-backed SQLite database."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from openevents import crud, lifecycle, participation
from openevents.clock import FixedClock
from openevents.errors import DataIntegrityError
from openevents.models import Base, RequestStatus

NOW = datetime(2030, 6, 1, 12, 0, 0)


@pytest.fixture()
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


def _published_event(factory, *, participant_limit, request_moderation, guests):
    clock = FixedClock(NOW)
    with factory() as session:
        organizer = crud.create_user(session, name="Organizer", email="org@example.com")
        category = crud.create_category(session, name="Races")
        event = lifecycle.create_event(
            session,
            initiator_id=organizer.id,
            title="Crowded gig",
            annotation="Everybody wants a ticket for this one",
            description="A small venue with far more fans than seats available.",
            category_id=category.id,
            location=lifecycle.Location(lat=0.0, lon=0.0),
            event_date=clock.now() + timedelta(days=1),
            participant_limit=participant_limit,
            request_moderation=request_moderation,
            clock=clock,
        )
        lifecycle.update_event(
            session,
            event_id=event.id,
            actor=lifecycle.Actor.ADMIN,
            action=lifecycle.LifecycleAction(
                lifecycle.Actor.ADMIN, lifecycle.StateAction.PUBLISH_EVENT
            ),
            clock=clock,
        )
        users = [
            crud.create_user(session, name=f"Fan {i}", email=f"fan{i}@example.com")
            for i in range(guests)
        ]
        session.commit()
        return event.id, organizer.id, [u.id for u in users]


def _run_concurrently(jobs):
    barrier = threading.Barrier(len(jobs))
    outcomes: list[str] = []
    lock = threading.Lock()

    def worker(job):
        barrier.wait()
        try:
            job()
        except DataIntegrityError:
            result = "conflict"
        else:
            result = "ok"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker, args=(job,)) for job in jobs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


def test_concurrent_batches_never_overfill(file_sessions):
    event_id, organizer_id, user_ids = _published_event(
        file_sessions, participant_limit=3, request_moderation=True, guests=8
    )
    with file_sessions() as session:
        request_ids = [
            participation.create_request(
                session, requester_id=user_id, event_id=event_id, clock=FixedClock(NOW)
            ).id
            for user_id in user_ids
        ]
        session.commit()

    def resolver(batch):
        def run():
            with file_sessions() as session:
                participation.resolve_requests(
                    session,
                    organizer_id=organizer_id,
                    event_id=event_id,
                    request_ids=batch,
                    desired=RequestStatus.CONFIRMED,
                )
                session.commit()

        return run

    outcomes = _run_concurrently([resolver(request_ids[:4]), resolver(request_ids[4:])])

    assert sorted(outcomes) == ["conflict", "ok"]
    with file_sessions() as session:
        assert crud.count_confirmed(session, event_id) == 3


def test_concurrent_admissions_respect_limit(file_sessions):
    event_id, _, user_ids = _published_event(
        file_sessions, participant_limit=2, request_moderation=False, guests=6
    )

    def joiner(user_id):
        def run():
            with file_sessions() as session:
                participation.create_request(
                    session, requester_id=user_id, event_id=event_id, clock=FixedClock(NOW)
                )
                session.commit()

        return run

    outcomes = _run_concurrently([joiner(user_id) for user_id in user_ids])

    assert outcomes.count("ok") == 2
    assert outcomes.count("conflict") == 4
    with file_sessions() as session:
        assert crud.count_confirmed(session, event_id) == 2
