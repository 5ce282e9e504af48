from __future__ import annotations

import pytest

from openevents import comments, participation
from openevents.comments import ModerationAction
from openevents.errors import (
    AccessError,
    DataIntegrityError,
    InvalidInputError,
    NotFoundError,
)
from openevents.models import CommentStatus


@pytest.fixture()
def attendee(session, clock, make_event, make_user):
    """A user holding a confirmed request for a published event."""
    event = make_event(participant_limit=0)
    user = make_user("Attendee")
    participation.create_request(session, requester_id=user.id, event_id=event.id, clock=clock)
    session.commit()
    return user, event


def _comment(session, clock, user, event, text="Great show, would go again"):
    return comments.create_comment(
        session, user_id=user.id, event_id=event.id, text=text, clock=clock
    )


def test_confirmed_participant_can_comment(session, clock, attendee):
    user, event = attendee
    comment = _comment(session, clock, user, event)
    assert comment.status == CommentStatus.PENDING
    assert comment.created_on == clock.now()


def test_comment_requires_confirmed_request(session, clock, make_event, make_user):
    event = make_event(participant_limit=5)
    user = make_user()
    participation.create_request(session, requester_id=user.id, event_id=event.id, clock=clock)
    with pytest.raises(AccessError):
        _comment(session, clock, user, event)


def test_one_comment_per_event(session, clock, attendee):
    user, event = attendee
    _comment(session, clock, user, event)
    with pytest.raises(DataIntegrityError):
        _comment(session, clock, user, event, text="Second thoughts")


def test_comment_text_length(session, clock, attendee):
    user, event = attendee
    with pytest.raises(InvalidInputError):
        _comment(session, clock, user, event, text="meh")


def test_missing_event(session, clock, make_user):
    with pytest.raises(NotFoundError):
        comments.create_comment(
            session, user_id=make_user().id, event_id=404, text="Hello there", clock=clock
        )


def test_edit_only_after_moderation(session, clock, attendee):
    user, event = attendee
    comment = _comment(session, clock, user, event)
    with pytest.raises(DataIntegrityError):
        comments.update_comment(
            session, user_id=user.id, comment_id=comment.id, text="Edited too early"
        )

    comments.moderate_comment(session, comment_id=comment.id, action=ModerationAction.APPROVE)
    edited = comments.update_comment(
        session, user_id=user.id, comment_id=comment.id, text="Edited after approval"
    )
    assert edited.text == "Edited after approval"
    assert edited.status == CommentStatus.PENDING


def test_only_author_can_edit_or_delete(session, clock, attendee, make_user):
    user, event = attendee
    comment = _comment(session, clock, user, event)
    intruder = make_user("Intruder")
    with pytest.raises(AccessError):
        comments.delete_comment(session, user_id=intruder.id, comment_id=comment.id)
    comments.delete_comment(session, user_id=user.id, comment_id=comment.id)
    with pytest.raises(NotFoundError):
        comments.get_own_comment(session, user_id=user.id, comment_id=comment.id)


def test_moderation_requires_pending(session, clock, attendee):
    user, event = attendee
    comment = _comment(session, clock, user, event)
    comments.moderate_comment(session, comment_id=comment.id, action=ModerationAction.REJECT)
    assert comment.status == CommentStatus.REJECT
    with pytest.raises(DataIntegrityError):
        comments.moderate_comment(
            session, comment_id=comment.id, action=ModerationAction.APPROVE
        )


def test_public_listing_shows_approved_only(session, clock, make_event, make_user):
    event = make_event(participant_limit=0)
    authors = [make_user(f"Fan {i}") for i in range(3)]
    created = []
    for author in authors:
        participation.create_request(
            session, requester_id=author.id, event_id=event.id, clock=clock
        )
        created.append(_comment(session, clock, author, event, text=f"Loved it, {author.name}"))
        clock.advance(minutes=1)
    comments.moderate_comment(session, comment_id=created[0].id, action=ModerationAction.APPROVE)
    comments.moderate_comment(session, comment_id=created[2].id, action=ModerationAction.APPROVE)
    session.commit()

    listed = comments.list_published_comments(session, event_id=event.id)
    assert [c.id for c in listed] == [created[2].id, created[0].id]

    own = comments.list_own_comments(
        session, user_id=authors[1].id, status=CommentStatus.PENDING
    )
    assert [c.id for c in own] == [created[1].id]


def test_public_listing_needs_published_event(session, make_event):
    event = make_event(publish=False)
    with pytest.raises(NotFoundError):
        comments.list_published_comments(session, event_id=event.id)
