from __future__ import annotations

from datetime import timedelta

import pytest

from openevents import comments, crud, participation
from openevents.errors import DataIntegrityError, NotFoundError
from openevents.models import CommentStatus, EventState


def test_user_emails_are_unique_and_normalized(session):
    user = crud.create_user(session, name=" Ada ", email=" Ada@Example.com ")
    assert user.name == "Ada"
    assert user.email == "ada@example.com"
    with pytest.raises(DataIntegrityError):
        crud.create_user(session, name="Ada again", email="ADA@example.com")


def test_list_users_filters_by_ids(session, make_user):
    users = [make_user(f"U{i}") for i in range(4)]
    listed = crud.list_users(session, ids=[users[3].id, users[1].id])
    assert [u.id for u in listed] == [users[1].id, users[3].id]
    assert len(crud.list_users(session, offset=1, size=2)) == 2


def test_user_owning_events_cannot_be_deleted(session, make_event, make_user):
    owner = make_user("Owner")
    make_event(initiator=owner)
    with pytest.raises(DataIntegrityError):
        crud.delete_user(session, owner.id)
    spare = make_user("Spare")
    crud.delete_user(session, spare.id)
    with pytest.raises(NotFoundError):
        crud.require_user(session, spare.id)


def test_category_names_are_unique_ignoring_case(session, category):
    with pytest.raises(DataIntegrityError):
        crud.create_category(session, name="concerts")
    other = crud.create_category(session, name="Lectures")
    with pytest.raises(DataIntegrityError):
        crud.rename_category(session, other, name="CONCERTS")
    assert crud.rename_category(session, category, name="Concerts").name == "Concerts"


def test_category_in_use_cannot_be_deleted(session, make_event, category):
    make_event()
    with pytest.raises(DataIntegrityError):
        crud.delete_category(session, category.id)


def test_confirmed_counts_include_missing_ids(session, clock, make_event, make_user):
    event = make_event(participant_limit=0)
    other = make_event(participant_limit=5, title="Moderated")
    for name in ("A", "B"):
        participation.create_request(
            session, requester_id=make_user(name).id, event_id=event.id, clock=clock
        )
    participation.create_request(
        session, requester_id=make_user("C").id, event_id=other.id, clock=clock
    )
    session.commit()

    assert crud.confirmed_counts(session, [event.id, other.id, 999]) == {
        event.id: 2,
        other.id: 0,
        999: 0,
    }
    assert crud.confirmed_counts(session, []) == {}


def test_public_filter_defaults_to_future_published(session, clock, make_event):
    soon = make_event(title="Soon", event_date=clock.now() + timedelta(days=1))
    later = make_event(title="Later", event_date=clock.now() + timedelta(days=5))
    make_event(title="Draft", publish=False)

    found = crud.filter_public_events(session, now=clock.now())
    assert [e.id for e in found] == [soon.id, later.id]

    moved_on = crud.filter_public_events(session, now=clock.now() + timedelta(days=2))
    assert [e.id for e in moved_on] == [later.id]


def test_public_filter_by_text_paid_and_range(session, clock, make_event):
    jam = make_event(title="Jam", event_date=clock.now() + timedelta(days=1))
    gala = make_event(title="Gala", event_date=clock.now() + timedelta(days=4))
    gala.paid = True
    gala.annotation = "A formal gala dinner with a string quartet"
    session.commit()

    assert [e.id for e in crud.filter_public_events(session, now=clock.now(), text="GALA")] == [
        gala.id
    ]
    assert [e.id for e in crud.filter_public_events(session, now=clock.now(), paid=False)] == [
        jam.id
    ]
    ranged = crud.filter_public_events(
        session,
        now=clock.now(),
        range_start=clock.now() + timedelta(days=2),
        range_end=clock.now() + timedelta(days=10),
    )
    assert [e.id for e in ranged] == [gala.id]


def test_admin_search_sees_every_state(session, make_event):
    draft = make_event(publish=False, title="Draft")
    live = make_event(title="Live")
    pending = crud.search_admin_events(session, states=[EventState.PENDING])
    assert [e.id for e in pending] == [draft.id]
    by_owner = crud.search_admin_events(session, users=[live.initiator_id])
    assert [e.id for e in by_owner] == [live.id]


def test_comment_counts_only_count_approved(session, clock, make_event, make_user):
    event = make_event(participant_limit=0)
    for name, status in (("A", CommentStatus.APPROVE), ("B", CommentStatus.PENDING)):
        user = make_user(name)
        participation.create_request(
            session, requester_id=user.id, event_id=event.id, clock=clock
        )
        comment = comments.create_comment(
            session, user_id=user.id, event_id=event.id, text="Looking forward", clock=clock
        )
        comment.status = status
    session.commit()
    assert crud.comment_counts(session, [event.id]) == {event.id: 1}
