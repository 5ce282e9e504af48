"""Participation requests: admission, cancellation and batch resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from sqlalchemy.orm import Session

from . import crud
from .clock import Clock, system_clock
from .database import lock_row
from .errors import AccessError, DataIntegrityError, InvalidInputError, NotFoundError
from .models import Event, EventState, ParticipationRequest, RequestStatus

logger = logging.getLogger("uvicorn.error")

RESOLVABLE_STATUSES = {RequestStatus.CONFIRMED, RequestStatus.REJECTED}
CANCELABLE_STATUSES = {RequestStatus.PENDING, RequestStatus.CONFIRMED}


@dataclass
class ResolutionResult:
    confirmed: list[ParticipationRequest] = field(default_factory=list)
    rejected: list[ParticipationRequest] = field(default_factory=list)


def initial_status(event: Event) -> RequestStatus:
    """Unlimited or unmoderated events confirm on arrival."""
    if event.is_unlimited or not event.request_moderation:
        return RequestStatus.CONFIRMED
    return RequestStatus.PENDING


def create_request(
    session: Session,
    *,
    requester_id: int,
    event_id: int,
    clock: Clock = system_clock,
) -> ParticipationRequest:
    """Admit ``requester_id`` to ``event_id``; the first failing check wins."""
    event = crud.require_event(session, event_id)
    requester = crud.require_user(session, requester_id)
    if event.initiator_id == requester.id:
        raise DataIntegrityError("The initiator cannot request to join their own event")
    if event.state != EventState.PUBLISHED:
        raise DataIntegrityError("Cannot join an event that is not published")

    lock_row(session, Event, event.id)
    session.refresh(event)
    if crud.find_request(session, requester_id=requester.id, event_id=event.id):
        raise DataIntegrityError(
            f"User with id={requester.id} already has a request for event {event.id}"
        )
    if not event.is_unlimited:
        confirmed = crud.count_confirmed(session, event.id)
        if confirmed >= event.participant_limit:
            raise DataIntegrityError(
                f"Event {event.id} has reached its participant limit"
            )

    request = ParticipationRequest(
        event=event,
        requester=requester,
        status=initial_status(event),
        created=clock.now(),
    )
    session.add(request)
    session.flush()
    logger.info(
        "Request %s for event %s created as %s", request.id, event.id, request.status
    )
    return request


def cancel_request(
    session: Session, *, user_id: int, request_id: int
) -> ParticipationRequest:
    crud.require_user(session, user_id)
    request = crud.require_request(session, request_id)
    if request.requester_id != user_id:
        raise AccessError(
            f"Request with id={request_id} does not belong to user {user_id}"
        )
    if request.status not in CANCELABLE_STATUSES:
        raise DataIntegrityError(f"Cannot cancel a request in status {request.status}")
    request.status = RequestStatus.CANCELED
    session.add(request)
    session.flush()
    logger.info("Request %s canceled by its requester", request.id)
    return request


def list_user_requests(
    session: Session, *, user_id: int, event_id: int | None = None
) -> Sequence[ParticipationRequest]:
    crud.require_user(session, user_id)
    return crud.list_requests_for_user(session, user_id, event_id=event_id)


def list_event_requests(
    session: Session, *, organizer_id: int, event_id: int
) -> Sequence[ParticipationRequest]:
    crud.require_user(session, organizer_id)
    event = crud.require_event(session, event_id)
    if event.initiator_id != organizer_id:
        raise AccessError(
            f"User with id={organizer_id} is not the initiator of event {event_id}"
        )
    return crud.list_requests_for_event(session, event.id)


def resolve_requests(
    session: Session,
    *,
    organizer_id: int,
    event_id: int,
    request_ids: Sequence[int],
    desired: RequestStatus,
) -> ResolutionResult:
    """Confirm or reject a batch of pending requests.

    Validation is all-or-nothing: every id must exist, belong to the event and
    still be PENDING, otherwise nothing changes. Allocation walks the ids in
    the order given and confirms while slots remain; the rest are rejected.
    The event row stays locked from the capacity read until the caller's
    transaction ends.
    """
    if desired not in RESOLVABLE_STATUSES:
        raise InvalidInputError(f"Requests can only be confirmed or rejected, not {desired}")
    ordered_ids = list(dict.fromkeys(request_ids))
    if not ordered_ids:
        raise InvalidInputError("Field: request_ids. Error: must not be empty")

    crud.require_user(session, organizer_id)
    event = crud.require_event(session, event_id)
    if event.initiator_id != organizer_id:
        raise AccessError(
            f"User with id={organizer_id} is not the initiator of event {event_id}"
        )

    lock_row(session, Event, event.id)
    session.refresh(event)
    found = crud.get_requests_by_ids(session, ordered_ids)
    missing = [
        request_id
        for request_id in ordered_ids
        if request_id not in found or found[request_id].event_id != event.id
    ]
    if missing:
        raise NotFoundError(
            f"Requests {missing} were not found for event with id={event.id}"
        )
    targets = [found[request_id] for request_id in ordered_ids]
    not_pending = [request.id for request in targets if request.status != RequestStatus.PENDING]
    if not_pending:
        raise DataIntegrityError(
            f"Requests {not_pending} must be PENDING to change their status"
        )

    if event.is_unlimited:
        capacity = None
    else:
        capacity = event.participant_limit - crud.count_confirmed(session, event.id)
        if capacity <= 0:
            raise DataIntegrityError(f"Event {event.id} has reached its participant limit")

    result = ResolutionResult()
    for request in targets:
        if desired == RequestStatus.REJECTED or capacity == 0:
            request.status = RequestStatus.REJECTED
            result.rejected.append(request)
            continue
        request.status = RequestStatus.CONFIRMED
        result.confirmed.append(request)
        if capacity is not None:
            capacity -= 1
    session.add_all(targets)
    session.flush()
    logger.info(
        "Event %s requests resolved: %s confirmed, %s rejected",
        event.id,
        len(result.confirmed),
        len(result.rejected),
    )
    return result
