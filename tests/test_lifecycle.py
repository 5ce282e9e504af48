from __future__ import annotations

from datetime import timedelta

import pytest

from openevents import crud, lifecycle
from openevents.errors import (
    AccessError,
    DataIntegrityError,
    InvalidInputError,
    NotFoundError,
)
from openevents.lifecycle import (
    Actor,
    EventChanges,
    LifecycleAction,
    Location,
    StateAction,
)
from openevents.models import EventState

PUBLISH = LifecycleAction(Actor.ADMIN, StateAction.PUBLISH_EVENT)
REJECT = LifecycleAction(Actor.ADMIN, StateAction.REJECT_EVENT)
SEND_TO_REVIEW = LifecycleAction(Actor.OWNER, StateAction.SEND_TO_REVIEW)
CANCEL_REVIEW = LifecycleAction(Actor.OWNER, StateAction.CANCEL_REVIEW)


def _admin(session, clock, event, action=None, changes=None):
    return lifecycle.update_event(
        session,
        event_id=event.id,
        actor=Actor.ADMIN,
        action=action,
        changes=changes,
        clock=clock,
    )


def _owner(session, clock, event, caller_id, action=None, changes=None):
    return lifecycle.update_event(
        session,
        event_id=event.id,
        actor=Actor.OWNER,
        caller_id=caller_id,
        action=action,
        changes=changes,
        clock=clock,
    )


def test_new_event_starts_pending_with_defaults(make_event, clock):
    event = make_event(publish=False)
    assert event.state == EventState.PENDING
    assert event.published_on is None
    assert event.created_on == clock.now()
    assert event.participant_limit == 0
    assert event.request_moderation is True
    assert event.paid is False


def test_create_event_requires_authoring_lead_time(session, clock, category, make_user):
    user = make_user()
    with pytest.raises(InvalidInputError):
        lifecycle.create_event(
            session,
            initiator_id=user.id,
            title="Too soon",
            annotation="Starts in less than two hours",
            description="There is no time to get ready for this one.",
            category_id=category.id,
            location=Location(lat=0.0, lon=0.0),
            event_date=clock.now() + timedelta(hours=1, minutes=59),
            clock=clock,
        )


def test_create_event_with_unknown_category(session, clock, make_user):
    user = make_user()
    with pytest.raises(NotFoundError):
        lifecycle.create_event(
            session,
            initiator_id=user.id,
            title="Nowhere",
            annotation="An event in a category that is gone",
            description="The category was deleted before we got here.",
            category_id=999,
            location=Location(lat=0.0, lon=0.0),
            event_date=clock.now() + timedelta(days=1),
            clock=clock,
        )


def test_publish_sets_published_on_once(session, clock, make_event):
    event = make_event(publish=False)
    _admin(session, clock, event, PUBLISH)
    session.commit()
    assert event.state == EventState.PUBLISHED
    assert event.published_on == clock.now()

    clock.advance(minutes=5)
    with pytest.raises(DataIntegrityError):
        _admin(session, clock, event, PUBLISH)
    session.rollback()
    refreshed = crud.require_event(session, event.id)
    assert refreshed.published_on == clock.now() - timedelta(minutes=5)


@pytest.mark.parametrize(
    "lead, allowed",
    [
        (timedelta(minutes=59, seconds=59), False),
        (timedelta(hours=1), True),
        (timedelta(days=2), True),
    ],
)
def test_publish_needs_one_hour_lead(session, clock, make_event, lead, allowed):
    event = make_event(publish=False, event_date=clock.now() + timedelta(hours=3))
    clock.moment = event.event_date - lead
    if allowed:
        _admin(session, clock, event, PUBLISH)
        assert event.state == EventState.PUBLISHED
    else:
        with pytest.raises(DataIntegrityError):
            _admin(session, clock, event, PUBLISH)


def test_publish_requires_pending(session, clock, make_event):
    event = make_event(publish=False)
    _admin(session, clock, event, REJECT)
    assert event.state == EventState.CANCELED
    with pytest.raises(DataIntegrityError):
        _admin(session, clock, event, PUBLISH)


def test_reject_fails_for_published_event(session, clock, make_event):
    event = make_event()
    with pytest.raises(DataIntegrityError):
        _admin(session, clock, event, REJECT)


def test_reject_cancels_pending_event(session, clock, make_event):
    event = make_event(publish=False)
    _admin(session, clock, event, REJECT)
    assert event.state == EventState.CANCELED
    assert event.published_on is None


def test_owner_can_toggle_review(session, clock, make_event, make_user):
    owner = make_user()
    event = make_event(initiator=owner, publish=False)
    _owner(session, clock, event, owner.id, CANCEL_REVIEW)
    assert event.state == EventState.CANCELED
    _owner(session, clock, event, owner.id, SEND_TO_REVIEW)
    assert event.state == EventState.PENDING


def test_owner_cannot_touch_published_event(session, clock, make_event, make_user):
    owner = make_user()
    event = make_event(initiator=owner)
    with pytest.raises(DataIntegrityError):
        _owner(session, clock, event, owner.id, changes=EventChanges(title="Renamed"))
    with pytest.raises(DataIntegrityError):
        _owner(session, clock, event, owner.id, CANCEL_REVIEW)


def test_non_owner_is_denied(session, clock, make_event, make_user):
    event = make_event(publish=False)
    stranger = make_user("Stranger")
    with pytest.raises(AccessError):
        _owner(session, clock, event, stranger.id, changes=EventChanges(title="Mine"))


def test_actor_and_action_must_match():
    with pytest.raises(InvalidInputError):
        LifecycleAction(Actor.OWNER, StateAction.PUBLISH_EVENT)
    with pytest.raises(InvalidInputError):
        LifecycleAction(Actor.ADMIN, StateAction.SEND_TO_REVIEW)


def test_owner_update_is_a_merge_patch(session, clock, make_event, make_user):
    owner = make_user()
    event = make_event(initiator=owner, publish=False)
    original_description = event.description
    _owner(
        session,
        clock,
        event,
        owner.id,
        changes=EventChanges(
            title="Winter Jam",
            paid=True,
            participant_limit=10,
            location=Location(lat=1.5, lon=2.5),
        ),
    )
    assert event.title == "Winter Jam"
    assert event.paid is True
    assert event.participant_limit == 10
    assert (event.location_lat, event.location_lon) == (1.5, 2.5)
    assert event.description == original_description
    assert event.request_moderation is True


def test_changes_apply_before_publish(session, clock, make_event):
    event = make_event(publish=False, event_date=clock.now() + timedelta(hours=3))
    clock.advance(hours=2, minutes=30)
    with pytest.raises(DataIntegrityError):
        _admin(session, clock, event, PUBLISH)
    session.rollback()

    event = crud.require_event(session, event.id)
    _admin(
        session,
        clock,
        event,
        PUBLISH,
        changes=EventChanges(event_date=clock.now() + timedelta(days=1)),
    )
    assert event.state == EventState.PUBLISHED


def test_event_date_change_rechecks_authoring_lead(session, clock, make_event):
    event = make_event(publish=False)
    with pytest.raises(InvalidInputError):
        _admin(
            session,
            clock,
            event,
            changes=EventChanges(event_date=clock.now() + timedelta(minutes=30)),
        )


def test_category_change_must_resolve(session, clock, make_event):
    event = make_event(publish=False)
    with pytest.raises(NotFoundError):
        _admin(session, clock, event, changes=EventChanges(category_id=404))
    session.rollback()
    other = crud.create_category(session, name="Lectures")
    event = crud.require_event(session, event.id)
    _admin(session, clock, event, changes=EventChanges(category_id=other.id))
    assert event.category_id == other.id


def test_negative_participant_limit_rejected(session, clock, make_event):
    event = make_event(publish=False)
    with pytest.raises(InvalidInputError):
        _admin(session, clock, event, changes=EventChanges(participant_limit=-1))


def test_admin_may_edit_published_event(session, clock, make_event):
    event = make_event()
    _admin(session, clock, event, changes=EventChanges(title="Headliner announced"))
    assert event.title == "Headliner announced"
    assert event.state == EventState.PUBLISHED
