"""Event authoring, property edits and publish-state transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import datetime
from enum import StrEnum

from sqlalchemy.orm import Session

from . import crud
from .clock import Clock, system_clock
from .config import settings
from .errors import AccessError, DataIntegrityError, InvalidInputError
from .models import Event, EventState
from .utils import format_datetime, to_naive_utc, truncate_to_seconds

logger = logging.getLogger("uvicorn.error")

TITLE_LENGTH = (3, 120)
ANNOTATION_LENGTH = (20, 2000)
DESCRIPTION_LENGTH = (20, 7000)

OWNER_EDITABLE_STATES = {EventState.PENDING, EventState.CANCELED}


class Actor(StrEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"


class StateAction(StrEnum):
    SEND_TO_REVIEW = "SEND_TO_REVIEW"
    CANCEL_REVIEW = "CANCEL_REVIEW"
    PUBLISH_EVENT = "PUBLISH_EVENT"
    REJECT_EVENT = "REJECT_EVENT"


ACTIONS_BY_ACTOR = {
    Actor.OWNER: {StateAction.SEND_TO_REVIEW, StateAction.CANCEL_REVIEW},
    Actor.ADMIN: {StateAction.PUBLISH_EVENT, StateAction.REJECT_EVENT},
}


@dataclass(frozen=True)
class LifecycleAction:
    """A state action together with who issues it."""

    actor: Actor
    action: StateAction

    def __post_init__(self) -> None:
        if self.action not in ACTIONS_BY_ACTOR[self.actor]:
            raise InvalidInputError(
                f"Action {self.action} is not available to {self.actor.lower()}"
            )


@dataclass(frozen=True)
class Location:
    lat: float
    lon: float


@dataclass
class EventChanges:
    """Merge-patch for an event. ``None`` means the field was not sent."""

    title: str | None = None
    annotation: str | None = None
    description: str | None = None
    category_id: int | None = None
    location: Location | None = None
    paid: bool | None = None
    participant_limit: int | None = None
    request_moderation: bool | None = None
    event_date: datetime | None = None

    def present(self) -> dict:
        return {
            field.name: getattr(self, field.name)
            for field in fields(self)
            if getattr(self, field.name) is not None
        }


def _check_length(name: str, value: str, bounds: tuple[int, int]) -> str:
    cleaned = value.strip()
    low, high = bounds
    if not low <= len(cleaned) <= high:
        raise InvalidInputError(
            f"Field: {name}. Error: length must be between {low} and {high}"
        )
    return cleaned


def _check_participant_limit(value: int) -> int:
    if value < 0:
        raise InvalidInputError("Field: participant_limit. Error: must not be negative")
    return value


def check_authoring_lead_time(event_date: datetime, *, clock: Clock) -> datetime:
    """Reject event dates closer to now than the authoring lead time."""
    event_date = truncate_to_seconds(to_naive_utc(event_date))
    earliest = clock.now() + settings.authoring_lead_time
    if event_date < earliest:
        raise InvalidInputError(
            "Field: event_date. Error: must be at least "
            f"{settings.authoring_lead_hours} hours ahead of now. "
            f"Value: {format_datetime(event_date)}"
        )
    return event_date


def create_event(
    session: Session,
    *,
    initiator_id: int,
    title: str,
    annotation: str,
    description: str,
    category_id: int,
    location: Location,
    event_date: datetime,
    paid: bool = False,
    participant_limit: int = 0,
    request_moderation: bool = True,
    clock: Clock = system_clock,
) -> Event:
    """Create a PENDING event owned by ``initiator_id``."""
    initiator = crud.require_user(session, initiator_id)
    event_date = check_authoring_lead_time(event_date, clock=clock)
    event = Event(
        title=_check_length("title", title, TITLE_LENGTH),
        annotation=_check_length("annotation", annotation, ANNOTATION_LENGTH),
        description=_check_length("description", description, DESCRIPTION_LENGTH),
        category=crud.require_category(session, category_id),
        initiator=initiator,
        location_lat=location.lat,
        location_lon=location.lon,
        event_date=event_date,
        created_on=clock.now(),
        paid=paid,
        participant_limit=_check_participant_limit(participant_limit),
        request_moderation=request_moderation,
        state=EventState.PENDING,
    )
    session.add(event)
    session.flush()
    logger.info("Event %s created by user %s", event.id, initiator.id)
    return event


def apply_event_changes(
    session: Session, event: Event, changes: EventChanges, *, clock: Clock
) -> Event:
    """Validate and write only the fields present in ``changes``."""
    present = changes.present()
    if "title" in present:
        event.title = _check_length("title", changes.title, TITLE_LENGTH)
    if "annotation" in present:
        event.annotation = _check_length(
            "annotation", changes.annotation, ANNOTATION_LENGTH
        )
    if "description" in present:
        event.description = _check_length(
            "description", changes.description, DESCRIPTION_LENGTH
        )
    if "category_id" in present:
        event.category = crud.require_category(session, changes.category_id)
    if "location" in present:
        event.location_lat = changes.location.lat
        event.location_lon = changes.location.lon
    if "paid" in present:
        event.paid = changes.paid
    if "participant_limit" in present:
        event.participant_limit = _check_participant_limit(changes.participant_limit)
    if "request_moderation" in present:
        event.request_moderation = changes.request_moderation
    if "event_date" in present:
        event.event_date = check_authoring_lead_time(changes.event_date, clock=clock)
    return event


def apply_lifecycle_action(
    event: Event, action: LifecycleAction, *, clock: Clock
) -> Event:
    """Move ``event`` to the state ``action`` leads to, or raise."""
    current = event.state
    match action.action:
        case StateAction.SEND_TO_REVIEW | StateAction.CANCEL_REVIEW:
            if current not in OWNER_EDITABLE_STATES:
                raise DataIntegrityError(
                    f"Cannot {action.action.lower()} an event in state {current}"
                )
            event.state = (
                EventState.PENDING
                if action.action == StateAction.SEND_TO_REVIEW
                else EventState.CANCELED
            )
        case StateAction.PUBLISH_EVENT:
            if current != EventState.PENDING:
                raise DataIntegrityError(
                    f"Cannot publish the event because it's not in the right state: {current}"
                )
            now = clock.now()
            if now + settings.publish_lead_time > event.event_date:
                raise DataIntegrityError(
                    "Cannot publish the event because it starts in less than "
                    f"{settings.publish_lead_hours} hour(s)"
                )
            event.state = EventState.PUBLISHED
            event.published_on = now
        case StateAction.REJECT_EVENT:
            if current == EventState.PUBLISHED:
                raise DataIntegrityError(
                    "Cannot reject the event because it's already published"
                )
            event.state = EventState.CANCELED
    return event


def update_event(
    session: Session,
    *,
    event_id: int,
    actor: Actor,
    changes: EventChanges | None = None,
    action: LifecycleAction | None = None,
    caller_id: int | None = None,
    clock: Clock = system_clock,
) -> Event:
    """Apply an owner or admin update: field changes first, then the action.

    Owners must be the initiator and may only touch events that are PENDING or
    CANCELED. Admins may edit in any state; the action itself still enforces
    its own state guard. Nothing is flushed until every check has passed.
    """
    event = crud.require_event(session, event_id)
    if actor == Actor.OWNER:
        if caller_id is None:
            raise AccessError("Owner updates need a caller")
        crud.require_user(session, caller_id)
        if event.initiator_id != caller_id:
            raise AccessError(
                f"User with id={caller_id} is not the initiator of event {event_id}"
            )
        if event.state not in OWNER_EDITABLE_STATES:
            raise DataIntegrityError(
                f"Only pending or canceled events can be changed, not {event.state}"
            )
    if action is not None and action.actor != actor:
        raise InvalidInputError(
            f"Action {action.action} is not available to {actor.lower()}"
        )

    previous_state = event.state
    if changes is not None:
        apply_event_changes(session, event, changes, clock=clock)
    if action is not None:
        apply_lifecycle_action(event, action, clock=clock)
    session.add(event)
    session.flush()
    if event.state != previous_state:
        logger.info(
            "Event %s moved %s -> %s by %s",
            event.id,
            previous_state,
            event.state,
            actor.lower(),
        )
    return event


def get_owned_event(session: Session, *, user_id: int, event_id: int) -> Event:
    crud.require_user(session, user_id)
    event = crud.require_event(session, event_id)
    if event.initiator_id != user_id:
        raise AccessError(
            f"User with id={user_id} is not the initiator of event {event_id}"
        )
    return event
