"""Comment workflow: authoring by confirmed participants and admin moderation."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import crud
from .clock import Clock, system_clock
from .errors import AccessError, DataIntegrityError, InvalidInputError
from .models import Comment, CommentStatus, ParticipationRequest, RequestStatus

logger = logging.getLogger("uvicorn.error")

TEXT_LENGTH = (5, 255)


class ModerationAction(StrEnum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


def _clean_text(text: str) -> str:
    cleaned = (text or "").strip()
    low, high = TEXT_LENGTH
    if not low <= len(cleaned) <= high:
        raise InvalidInputError(
            f"Field: text. Error: length must be between {low} and {high}"
        )
    return cleaned


def _has_confirmed_request(session: Session, *, user_id: int, event_id: int) -> bool:
    stmt = select(ParticipationRequest.id).where(
        ParticipationRequest.requester_id == user_id,
        ParticipationRequest.event_id == event_id,
        ParticipationRequest.status == RequestStatus.CONFIRMED,
    )
    return session.scalars(stmt).first() is not None


def _owned_comment(session: Session, *, user_id: int, comment_id: int) -> Comment:
    crud.require_user(session, user_id)
    comment = crud.require_comment(session, comment_id)
    if comment.author_id != user_id:
        raise AccessError(
            f"Comment with id={comment_id} does not belong to user {user_id}"
        )
    return comment


def create_comment(
    session: Session,
    *,
    user_id: int,
    event_id: int,
    text: str,
    clock: Clock = system_clock,
) -> Comment:
    author = crud.require_user(session, user_id)
    event = crud.require_event(session, event_id)
    if not _has_confirmed_request(session, user_id=author.id, event_id=event.id):
        raise AccessError(
            f"User with id={author.id} has no confirmed request for event {event.id}"
        )
    if crud.comment_exists(session, author_id=author.id, event_id=event.id):
        raise DataIntegrityError(
            f"User with id={author.id} has already commented on event {event.id}"
        )
    comment = Comment(
        text=_clean_text(text),
        author=author,
        event=event,
        created_on=clock.now(),
        status=CommentStatus.PENDING,
    )
    session.add(comment)
    session.flush()
    logger.info("Comment %s added to event %s", comment.id, event.id)
    return comment


def update_comment(
    session: Session, *, user_id: int, comment_id: int, text: str
) -> Comment:
    """Replace the text of an already moderated comment and send it back to review."""
    comment = _owned_comment(session, user_id=user_id, comment_id=comment_id)
    if comment.status == CommentStatus.PENDING:
        raise DataIntegrityError("A comment cannot be edited while it awaits moderation")
    comment.text = _clean_text(text)
    comment.status = CommentStatus.PENDING
    session.add(comment)
    session.flush()
    return comment


def delete_comment(session: Session, *, user_id: int, comment_id: int) -> None:
    comment = _owned_comment(session, user_id=user_id, comment_id=comment_id)
    session.delete(comment)
    session.flush()
    logger.info("Comment %s deleted by its author", comment_id)


def get_own_comment(session: Session, *, user_id: int, comment_id: int) -> Comment:
    return _owned_comment(session, user_id=user_id, comment_id=comment_id)


def list_own_comments(
    session: Session,
    *,
    user_id: int,
    event_id: int | None = None,
    status: CommentStatus | None = None,
    offset: int = 0,
    size: int | None = None,
) -> Sequence[Comment]:
    crud.require_user(session, user_id)
    return crud.list_comments(
        session,
        author_id=user_id,
        event_ids=[event_id] if event_id is not None else None,
        status=status,
        offset=offset,
        size=size,
    )


def moderate_comment(
    session: Session, *, comment_id: int, action: ModerationAction
) -> Comment:
    comment = crud.require_comment(session, comment_id)
    if comment.status != CommentStatus.PENDING:
        raise DataIntegrityError(
            f"Only pending comments can be moderated, comment {comment_id} is {comment.status}"
        )
    comment.status = (
        CommentStatus.APPROVE
        if action == ModerationAction.APPROVE
        else CommentStatus.REJECT
    )
    session.add(comment)
    session.flush()
    logger.info("Comment %s moderated: %s", comment.id, comment.status)
    return comment


def list_published_comments(
    session: Session, *, event_id: int, offset: int = 0, size: int | None = None
) -> Sequence[Comment]:
    """Approved comments of a published event, newest first."""
    event = crud.require_published_event(session, event_id)
    return crud.list_comments(
        session,
        event_ids=[event.id],
        status=CommentStatus.APPROVE,
        offset=offset,
        size=size,
    )
