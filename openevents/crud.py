"""CRUD helpers for users, categories, events, requests and comments."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from .errors import DataIntegrityError, NotFoundError
from .models import (
    Category,
    Comment,
    CommentStatus,
    Event,
    EventState,
    ParticipationRequest,
    RequestStatus,
    User,
)


def _page(stmt, offset: int | None, size: int | None):
    if offset:
        stmt = stmt.offset(offset)
    if size and size > 0:
        stmt = stmt.limit(size)
    return stmt


# Users


def require_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError(f"User with id={user_id} was not found")
    return user


def create_user(session: Session, *, name: str, email: str) -> User:
    normalized = email.strip().lower()
    existing = session.scalars(select(User).where(User.email == normalized)).first()
    if existing:
        raise DataIntegrityError(f"User with email {normalized} already exists")
    user = User(name=name.strip(), email=normalized)
    session.add(user)
    session.flush()
    return user


def list_users(
    session: Session,
    *,
    ids: Sequence[int] | None = None,
    offset: int = 0,
    size: int | None = None,
) -> Sequence[User]:
    stmt = select(User).order_by(User.id)
    if ids:
        stmt = stmt.where(User.id.in_(ids))
    return session.scalars(_page(stmt, offset, size)).all()


def delete_user(session: Session, user_id: int) -> None:
    user = require_user(session, user_id)
    if user.events:
        raise DataIntegrityError(f"User with id={user_id} still owns events")
    session.delete(user)
    session.flush()


# Categories


def require_category(session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if not category:
        raise NotFoundError(f"Category with id={category_id} was not found")
    return category


def _ensure_category_name_free(
    session: Session, name: str, *, exclude_id: int | None = None
) -> None:
    stmt = select(Category).where(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    if session.scalars(stmt).first():
        raise DataIntegrityError(f"Category {name!r} already exists")


def create_category(session: Session, *, name: str) -> Category:
    name = name.strip()
    _ensure_category_name_free(session, name)
    category = Category(name=name)
    session.add(category)
    session.flush()
    return category


def rename_category(session: Session, category: Category, *, name: str) -> Category:
    name = name.strip()
    _ensure_category_name_free(session, name, exclude_id=category.id)
    category.name = name
    session.add(category)
    session.flush()
    return category


def delete_category(session: Session, category_id: int) -> None:
    category = require_category(session, category_id)
    in_use = session.scalar(
        select(func.count(Event.id)).where(Event.category_id == category_id)
    )
    if in_use:
        raise DataIntegrityError(f"Category with id={category_id} is not empty")
    session.delete(category)
    session.flush()


def list_categories(
    session: Session, *, offset: int = 0, size: int | None = None
) -> Sequence[Category]:
    stmt = select(Category).order_by(Category.id)
    return session.scalars(_page(stmt, offset, size)).all()


# Events


def require_event(session: Session, event_id: int) -> Event:
    event = session.get(Event, event_id)
    if not event:
        raise NotFoundError(f"Event with id={event_id} was not found")
    return event


def require_published_event(session: Session, event_id: int) -> Event:
    event = session.get(Event, event_id)
    if not event or event.state != EventState.PUBLISHED:
        raise NotFoundError(f"Event with id={event_id} was not found or is not published")
    return event


def list_events_by_initiator(
    session: Session, user_id: int, *, offset: int = 0, size: int | None = None
) -> Sequence[Event]:
    stmt = select(Event).where(Event.initiator_id == user_id).order_by(Event.id)
    return session.scalars(_page(stmt, offset, size)).all()


def search_admin_events(
    session: Session,
    *,
    users: Sequence[int] | None = None,
    states: Sequence[EventState] | None = None,
    categories: Sequence[int] | None = None,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    offset: int = 0,
    size: int | None = None,
) -> Sequence[Event]:
    """Retrieve events for admin review, any state."""
    stmt = select(Event).order_by(Event.id)
    if users:
        stmt = stmt.where(Event.initiator_id.in_(users))
    if states:
        stmt = stmt.where(Event.state.in_(states))
    if categories:
        stmt = stmt.where(Event.category_id.in_(categories))
    if range_start:
        stmt = stmt.where(Event.event_date > range_start)
    if range_end:
        stmt = stmt.where(Event.event_date < range_end)
    return session.scalars(_page(stmt, offset, size)).all()


def _confirmed_subquery():
    return (
        select(func.count(ParticipationRequest.id))
        .where(
            ParticipationRequest.event_id == Event.id,
            ParticipationRequest.status == RequestStatus.CONFIRMED,
        )
        .correlate(Event)
        .scalar_subquery()
    )


def filter_public_events(
    session: Session,
    *,
    now: datetime,
    text: str | None = None,
    categories: Sequence[int] | None = None,
    paid: bool | None = None,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    only_available: bool = False,
) -> Sequence[Event]:
    """Published events matching the filters, ordered by event date."""
    stmt = select(Event).where(Event.state == EventState.PUBLISHED)
    if text and text.strip():
        pattern = f"%{text.strip()}%"
        stmt = stmt.where(
            or_(Event.annotation.ilike(pattern), Event.description.ilike(pattern))
        )
    if categories:
        stmt = stmt.where(Event.category_id.in_(categories))
    if paid is not None:
        stmt = stmt.where(Event.paid.is_(paid))
    if range_start is None and range_end is None:
        stmt = stmt.where(Event.event_date > now)
    else:
        if range_start is not None:
            stmt = stmt.where(Event.event_date > range_start)
        if range_end is not None:
            stmt = stmt.where(Event.event_date < range_end)
    if only_available:
        stmt = stmt.where(
            or_(
                Event.participant_limit == 0,
                _confirmed_subquery() < Event.participant_limit,
            )
        )
    return session.scalars(stmt.order_by(Event.event_date, Event.id)).all()


# Requests


def count_confirmed(session: Session, event_id: int) -> int:
    """Confirmed requests for one event, always read from the requests table."""
    return (
        session.scalar(
            select(func.count(ParticipationRequest.id)).where(
                ParticipationRequest.event_id == event_id,
                ParticipationRequest.status == RequestStatus.CONFIRMED,
            )
        )
        or 0
    )


def confirmed_counts(session: Session, event_ids: Iterable[int]) -> dict[int, int]:
    """Group confirmed requests by event; ids without requests map to 0."""
    ids = list(dict.fromkeys(event_ids))
    if not ids:
        return {}
    rows = session.execute(
        select(ParticipationRequest.event_id, func.count(ParticipationRequest.id))
        .where(
            ParticipationRequest.event_id.in_(ids),
            ParticipationRequest.status == RequestStatus.CONFIRMED,
        )
        .group_by(ParticipationRequest.event_id)
    ).all()
    counts = {event_id: 0 for event_id in ids}
    for event_id, count in rows:
        counts[event_id] = count
    return counts


def find_request(
    session: Session, *, requester_id: int, event_id: int
) -> ParticipationRequest | None:
    stmt = select(ParticipationRequest).where(
        ParticipationRequest.requester_id == requester_id,
        ParticipationRequest.event_id == event_id,
    )
    return session.scalars(stmt).first()


def require_request(session: Session, request_id: int) -> ParticipationRequest:
    request = session.get(ParticipationRequest, request_id)
    if not request:
        raise NotFoundError(f"Request with id={request_id} was not found")
    return request


def get_requests_by_ids(
    session: Session, request_ids: Sequence[int]
) -> dict[int, ParticipationRequest]:
    if not request_ids:
        return {}
    stmt = select(ParticipationRequest).where(ParticipationRequest.id.in_(request_ids))
    return {request.id: request for request in session.scalars(stmt)}


def list_requests_for_event(
    session: Session, event_id: int
) -> Sequence[ParticipationRequest]:
    stmt = (
        select(ParticipationRequest)
        .where(ParticipationRequest.event_id == event_id)
        .order_by(ParticipationRequest.id)
    )
    return session.scalars(stmt).all()


def list_requests_for_user(
    session: Session, user_id: int, *, event_id: int | None = None
) -> Sequence[ParticipationRequest]:
    stmt = (
        select(ParticipationRequest)
        .where(ParticipationRequest.requester_id == user_id)
        .order_by(ParticipationRequest.id)
    )
    if event_id is not None:
        stmt = stmt.where(ParticipationRequest.event_id == event_id)
    return session.scalars(stmt).all()


# Comments


def require_comment(session: Session, comment_id: int) -> Comment:
    comment = session.get(Comment, comment_id)
    if not comment:
        raise NotFoundError(f"Comment with id={comment_id} was not found")
    return comment


def comment_exists(session: Session, *, author_id: int, event_id: int) -> bool:
    stmt = select(Comment.id).where(
        and_(Comment.author_id == author_id, Comment.event_id == event_id)
    )
    return session.scalars(stmt).first() is not None


def comment_counts(session: Session, event_ids: Iterable[int]) -> dict[int, int]:
    ids = list(dict.fromkeys(event_ids))
    if not ids:
        return {}
    rows = session.execute(
        select(Comment.event_id, func.count(Comment.id))
        .where(Comment.event_id.in_(ids), Comment.status == CommentStatus.APPROVE)
        .group_by(Comment.event_id)
    ).all()
    counts = {event_id: 0 for event_id in ids}
    for event_id, count in rows:
        counts[event_id] = count
    return counts


def list_comments(
    session: Session,
    *,
    author_id: int | None = None,
    event_ids: Sequence[int] | None = None,
    status: CommentStatus | None = None,
    offset: int = 0,
    size: int | None = None,
) -> Sequence[Comment]:
    stmt = select(Comment).order_by(Comment.created_on.desc(), Comment.id.desc())
    if author_id is not None:
        stmt = stmt.where(Comment.author_id == author_id)
    if event_ids:
        stmt = stmt.where(Comment.event_id.in_(event_ids))
    if status is not None:
        stmt = stmt.where(Comment.status == status)
    return session.scalars(_page(stmt, offset, size)).all()
