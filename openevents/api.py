"""FastAPI application for OpenEvents."""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version as pkg_version
from pathlib import Path

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from . import comments as comment_service
from . import crud, lifecycle, participation
from .clock import Clock, system_clock
from .config import settings
from .database import SessionLocal
from .errors import AccessError, DomainError, InvalidInputError
from .models import (
    Category,
    Comment,
    CommentStatus,
    Event,
    EventState,
    Meta,
    ParticipationRequest,
    RequestStatus,
    User,
)
from .occupancy import Occupancy, collect_occupancy
from .scheduler import start_scheduler, stop_scheduler
from .stats import StatsClient, event_uri, get_stats_client
from .storage import init_db
from .utils import format_datetime, paginate, parse_datetime, utcnow

# Use uvicorn's error logger so messages get the level prefix in the default log
# format.
logger = logging.getLogger("uvicorn.error")

EVENTS_PER_PAGE = settings.events_per_page
COMMENT_PREVIEW_LIMIT = settings.comment_preview_limit
SORT_OPTIONS = {"EVENT_DATE", "VIEWS", "COMMENTS"}


def _load_app_version() -> str:
    """Return the current package version, falling back to pyproject for dev runs."""
    try:
        return pkg_version("openevents")
    except PackageNotFoundError:
        pyproject_path = Path(__file__).resolve().parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            data = tomllib.loads(pyproject_path.read_text())
            project = data.get("project") or {}
            return str(project.get("version") or "dev")
    return "dev"


APP_VERSION = _load_app_version()


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    start_scheduler()
    try:
        yield
    finally:
        stop_scheduler()
        get_stats_client().close()


app = FastAPI(title="OpenEvents", version=APP_VERSION, lifespan=lifespan)


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_clock() -> Clock:
    return system_clock


def get_stats() -> StatsClient:
    return get_stats_client()


# Errors


def _error_body(
    *, status: str, reason: str, message: str, errors: list[str] | None = None
) -> dict:
    return {
        "status": status,
        "reason": reason,
        "message": message,
        "errors": errors or [],
        "timestamp": format_datetime(utcnow()),
    }


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    logger.warning(
        "%s on %s %s: %s", exc.label, request.method, request.url.path, exc.message
    )
    return JSONResponse(
        _error_body(status=exc.label, reason=exc.reason, message=exc.message),
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    ]
    logger.warning(
        "Invalid input on %s %s: %s", request.method, request.url.path, "; ".join(errors)
    )
    return JSONResponse(
        _error_body(
            status=InvalidInputError.label,
            reason=InvalidInputError.reason,
            message="Some of the fields were invalid.",
            errors=errors,
        ),
        status_code=400,
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    raw = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
    logger.warning(
        "Integrity error on %s %s: %s", request.method, request.url.path, raw
    )
    return JSONResponse(
        _error_body(
            status="CONFLICT",
            reason="Integrity constraint has been violated.",
            message=raw,
        ),
        status_code=409,
    )


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError):
    raw = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
    if "database is locked" in raw.lower():
        logger.error(
            "SQLite database is locked while handling %s %s",
            request.method,
            request.url.path,
        )
        status_code = 503
        label = "SERVICE_UNAVAILABLE"
        message = "The database is busy at the moment. Please try again."
    else:
        logger.error(
            "Operational database error on %s %s: %s",
            request.method,
            request.url.path,
            raw,
        )
        status_code = 500
        label = "INTERNAL_SERVER_ERROR"
        message = "We hit a database issue. Please try again."
    return JSONResponse(
        _error_body(status=label, reason="Database error.", message=message),
        status_code=status_code,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error while processing %s %s", request.method, request.url.path
    )
    return JSONResponse(
        _error_body(
            status="INTERNAL_SERVER_ERROR",
            reason="Unexpected error.",
            message="Internal server error",
        ),
        status_code=500,
    )


# Access


def _get_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization") or ""
    if not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def _fetch_root_token_in_session(db: Session) -> str | None:
    meta = db.get(Meta, settings.root_token_key)
    return meta.value if meta else None


def require_root(request: Request, db: Session = Depends(get_db)) -> None:
    token = _get_bearer_token(request)
    if not token or token != _fetch_root_token_in_session(db):
        raise AccessError("A valid root admin token is required")


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


# Payloads


class LocationPayload(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class EventCreatePayload(BaseModel):
    title: str = Field(..., min_length=3, max_length=120)
    annotation: str = Field(..., min_length=20, max_length=2000)
    description: str = Field(..., min_length=20, max_length=7000)
    category: int
    location: LocationPayload
    event_date: str = Field(..., description="YYYY-MM-DD HH:MM:SS, UTC")
    paid: bool = False
    participant_limit: int = Field(0, ge=0)
    request_moderation: bool = True


class EventUpdatePayload(BaseModel):
    title: str | None = Field(None, min_length=3, max_length=120)
    annotation: str | None = Field(None, min_length=20, max_length=2000)
    description: str | None = Field(None, min_length=20, max_length=7000)
    category: int | None = None
    location: LocationPayload | None = None
    event_date: str | None = Field(None, description="YYYY-MM-DD HH:MM:SS, UTC")
    paid: bool | None = None
    participant_limit: int | None = Field(None, ge=0)
    request_moderation: bool | None = None
    state_action: str | None = None


class RequestStatusUpdatePayload(BaseModel):
    request_ids: list[int]
    status: str


class UserCreatePayload(BaseModel):
    name: str = Field(..., min_length=2, max_length=250)
    email: str = Field(
        ..., min_length=6, max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
    )


class CategoryPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class CommentCreatePayload(BaseModel):
    event_id: int
    text: str = Field(..., min_length=5, max_length=255)


class CommentUpdatePayload(BaseModel):
    text: str = Field(..., min_length=5, max_length=255)


class CommentModerationPayload(BaseModel):
    action: str


# Parsing


def _parse_datetime_field(name: str, raw: str | None) -> datetime | None:
    if raw is None or not raw.strip():
        return None
    try:
        return parse_datetime(raw.strip())
    except ValueError as exc:
        raise InvalidInputError(
            f"Field: {name}. Error: use the YYYY-MM-DD HH:MM:SS format. Value: {raw}"
        ) from exc


def _parse_range(
    range_start: str | None, range_end: str | None
) -> tuple[datetime | None, datetime | None]:
    start = _parse_datetime_field("range_start", range_start)
    end = _parse_datetime_field("range_end", range_end)
    if start and end and end < start:
        raise InvalidInputError("range_end must not be before range_start")
    return start, end


def _parse_state_action(
    raw: str | None, actor: lifecycle.Actor
) -> lifecycle.LifecycleAction | None:
    if raw is None:
        return None
    try:
        action = lifecycle.StateAction(raw.strip().upper())
    except ValueError as exc:
        raise InvalidInputError(f"Unknown state action: {raw}") from exc
    return lifecycle.LifecycleAction(actor=actor, action=action)


def _parse_event_states(raw: Sequence[str] | None) -> list[EventState] | None:
    if not raw:
        return None
    try:
        return [EventState(value.strip().upper()) for value in raw]
    except ValueError as exc:
        raise InvalidInputError(f"Unknown event state in {list(raw)}") from exc


def _changes_from_payload(payload: EventUpdatePayload) -> lifecycle.EventChanges:
    data = payload.model_dump(exclude_unset=True)
    location = data.get("location")
    return lifecycle.EventChanges(
        title=data.get("title"),
        annotation=data.get("annotation"),
        description=data.get("description"),
        category_id=data.get("category"),
        location=lifecycle.Location(**location) if location else None,
        paid=data.get("paid"),
        participant_limit=data.get("participant_limit"),
        request_moderation=data.get("request_moderation"),
        event_date=_parse_datetime_field("event_date", data.get("event_date")),
    )


# Serializers


def _serialize_user(user: User, *, short: bool = False):
    payload = {"id": user.id, "name": user.name}
    if not short:
        payload["email"] = user.email
    return payload


def _serialize_category(category: Category):
    return {"id": category.id, "name": category.name}


def _serialize_comment(comment: Comment):
    return {
        "id": comment.id,
        "text": comment.text,
        "event_id": comment.event_id,
        "author": _serialize_user(comment.author, short=True),
        "created_on": format_datetime(comment.created_on),
        "status": str(comment.status),
    }


def _serialize_request(request: ParticipationRequest):
    return {
        "id": request.id,
        "event": request.event_id,
        "requester": request.requester_id,
        "status": str(request.status),
        "created": format_datetime(request.created),
    }


def _serialize_event(
    event: Event,
    occupancy: Occupancy | None = None,
    *,
    include_comments: Sequence[Comment] | None = None,
):
    occupancy = occupancy or Occupancy()
    payload = {
        "id": event.id,
        "title": event.title,
        "annotation": event.annotation,
        "description": event.description,
        "category": _serialize_category(event.category),
        "initiator": _serialize_user(event.initiator, short=True),
        "location": {"lat": event.location_lat, "lon": event.location_lon},
        "event_date": format_datetime(event.event_date),
        "created_on": format_datetime(event.created_on),
        "published_on": format_datetime(event.published_on),
        "paid": event.paid,
        "participant_limit": event.participant_limit,
        "request_moderation": event.request_moderation,
        "state": str(event.state),
        "confirmed_requests": occupancy.confirmed_requests,
        "views": occupancy.views,
    }
    if include_comments is not None:
        payload["comments"] = [_serialize_comment(c) for c in include_comments]
    return payload


def _enriched_events(
    db: Session, events: Sequence[Event], stats: StatsClient, clock: Clock
) -> list[dict]:
    occupancy = collect_occupancy(db, [event.id for event in events], stats, clock=clock)
    return [_serialize_event(event, occupancy.get(event.id)) for event in events]


def _enriched_event(
    db: Session, event: Event, stats: StatsClient, clock: Clock, **kwargs
) -> dict:
    occupancy = collect_occupancy(db, [event.id], stats, clock=clock)
    return _serialize_event(event, occupancy.get(event.id), **kwargs)


# Public


@app.get("/api/v1/events")
def api_search_events(
    request: Request,
    text: str | None = Query(None),
    categories: list[int] | None = Query(None),
    paid: bool | None = Query(None),
    range_start: str | None = Query(None),
    range_end: str | None = Query(None),
    only_available: bool = Query(False),
    sort: str | None = Query(None),
    from_: int = Query(0, ge=0, alias="from"),
    size: int = Query(EVENTS_PER_PAGE, ge=1, le=100),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stats: StatsClient = Depends(get_stats),
):
    start, end = _parse_range(range_start, range_end)
    sort_key = (sort or "EVENT_DATE").strip().upper()
    if sort_key not in SORT_OPTIONS:
        raise InvalidInputError(f"Unknown sort option: {sort}")
    events = list(
        crud.filter_public_events(
            db,
            now=clock.now(),
            text=text,
            categories=categories,
            paid=paid,
            range_start=start,
            range_end=end,
            only_available=only_available,
        )
    )
    stats.hit(uri=request.url.path, ip=_client_ip(request), timestamp=clock.now())

    if sort_key == "VIEWS":
        occupancy = collect_occupancy(db, [e.id for e in events], stats, clock=clock)
        events.sort(key=lambda e: (-occupancy[e.id].views, e.event_date, e.id))
        page = paginate(events, offset=from_, size=size)
        return [_serialize_event(event, occupancy[event.id]) for event in page]
    if sort_key == "COMMENTS":
        counts = crud.comment_counts(db, [e.id for e in events])
        events.sort(key=lambda e: (-counts[e.id], e.event_date, e.id))
    page = paginate(events, offset=from_, size=size)
    return _enriched_events(db, page, stats, clock)


@app.get("/api/v1/events/{event_id}")
def api_get_event(
    event_id: int,
    request: Request,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stats: StatsClient = Depends(get_stats),
):
    event = crud.require_published_event(db, event_id)
    stats.hit(uri=event_uri(event.id), ip=_client_ip(request), timestamp=clock.now())
    preview = crud.list_comments(
        db,
        event_ids=[event.id],
        status=CommentStatus.APPROVE,
        size=COMMENT_PREVIEW_LIMIT,
    )
    return _enriched_event(db, event, stats, clock, include_comments=preview)


@app.get("/api/v1/events/{event_id}/comments")
def api_list_event_comments(
    event_id: int,
    from_: int = Query(0, ge=0, alias="from"),
    size: int = Query(EVENTS_PER_PAGE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    found = comment_service.list_published_comments(
        db, event_id=event_id, offset=from_, size=size
    )
    return [_serialize_comment(comment) for comment in found]


@app.get("/api/v1/categories")
def api_list_categories(
    from_: int = Query(0, ge=0, alias="from"),
    size: int = Query(EVENTS_PER_PAGE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return [
        _serialize_category(c)
        for c in crud.list_categories(db, offset=from_, size=size)
    ]


@app.get("/api/v1/categories/{category_id}")
def api_get_category(category_id: int, db: Session = Depends(get_db)):
    return _serialize_category(crud.require_category(db, category_id))


# Private: events


@app.get("/api/v1/users/{user_id}/events")
def api_list_user_events(
    user_id: int,
    from_: int = Query(0, ge=0, alias="from"),
    size: int = Query(EVENTS_PER_PAGE, ge=1, le=100),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stats: StatsClient = Depends(get_stats),
):
    crud.require_user(db, user_id)
    events = crud.list_events_by_initiator(db, user_id, offset=from_, size=size)
    return _enriched_events(db, events, stats, clock)


@app.post("/api/v1/users/{user_id}/events", status_code=201)
def api_create_event(
    user_id: int,
    payload: EventCreatePayload,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stats: StatsClient = Depends(get_stats),
):
    event_date = _parse_datetime_field("event_date", payload.event_date)
    event = lifecycle.create_event(
        db,
        initiator_id=user_id,
        title=payload.title,
        annotation=payload.annotation,
        description=payload.description,
        category_id=payload.category,
        location=lifecycle.Location(
            lat=payload.location.lat, lon=payload.location.lon
        ),
        event_date=event_date,
        paid=payload.paid,
        participant_limit=payload.participant_limit,
        request_moderation=payload.request_moderation,
        clock=clock,
    )
    db.commit()
    return _enriched_event(db, event, stats, clock)


@app.get("/api/v1/users/{user_id}/events/{event_id}")
def api_get_user_event(
    user_id: int,
    event_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stats: StatsClient = Depends(get_stats),
):
    event = lifecycle.get_owned_event(db, user_id=user_id, event_id=event_id)
    return _enriched_event(db, event, stats, clock)


@app.patch("/api/v1/users/{user_id}/events/{event_id}")
def api_update_user_event(
    user_id: int,
    event_id: int,
    payload: EventUpdatePayload,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stats: StatsClient = Depends(get_stats),
):
    event = lifecycle.update_event(
        db,
        event_id=event_id,
        actor=lifecycle.Actor.OWNER,
        caller_id=user_id,
        changes=_changes_from_payload(payload),
        action=_parse_state_action(payload.state_action, lifecycle.Actor.OWNER),
        clock=clock,
    )
    db.commit()
    return _enriched_event(db, event, stats, clock)


@app.get("/api/v1/users/{user_id}/events/{event_id}/requests")
def api_list_event_requests(
    user_id: int, event_id: int, db: Session = Depends(get_db)
):
    found = participation.list_event_requests(
        db, organizer_id=user_id, event_id=event_id
    )
    return [_serialize_request(r) for r in found]


@app.patch("/api/v1/users/{user_id}/events/{event_id}/requests")
def api_resolve_event_requests(
    user_id: int,
    event_id: int,
    payload: RequestStatusUpdatePayload,
    db: Session = Depends(get_db),
):
    try:
        desired = RequestStatus(payload.status.strip().upper())
    except ValueError as exc:
        raise InvalidInputError(f"Unknown request status: {payload.status}") from exc
    result = participation.resolve_requests(
        db,
        organizer_id=user_id,
        event_id=event_id,
        request_ids=payload.request_ids,
        desired=desired,
    )
    return {
        "confirmed_requests": [_serialize_request(r) for r in result.confirmed],
        "rejected_requests": [_serialize_request(r) for r in result.rejected],
    }


# Private: requests


@app.get("/api/v1/users/{user_id}/requests")
def api_list_user_requests(
    user_id: int,
    event_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    found = participation.list_user_requests(db, user_id=user_id, event_id=event_id)
    return [_serialize_request(r) for r in found]


@app.post("/api/v1/users/{user_id}/requests", status_code=201)
def api_create_request(
    user_id: int,
    event_id: int = Query(...),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    created = participation.create_request(
        db, requester_id=user_id, event_id=event_id, clock=clock
    )
    return _serialize_request(created)


@app.patch("/api/v1/users/{user_id}/requests/{request_id}/cancel")
def api_cancel_request(user_id: int, request_id: int, db: Session = Depends(get_db)):
    canceled = participation.cancel_request(db, user_id=user_id, request_id=request_id)
    return _serialize_request(canceled)


# Private: comments


@app.get("/api/v1/users/{user_id}/comments")
def api_list_user_comments(
    user_id: int,
    event_id: int | None = Query(None),
    status: str | None = Query(None),
    from_: int = Query(0, ge=0, alias="from"),
    size: int = Query(EVENTS_PER_PAGE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    found = comment_service.list_own_comments(
        db,
        user_id=user_id,
        event_id=event_id,
        status=_parse_comment_status(status),
        offset=from_,
        size=size,
    )
    return [_serialize_comment(c) for c in found]


@app.post("/api/v1/users/{user_id}/comments", status_code=201)
def api_create_comment(
    user_id: int,
    payload: CommentCreatePayload,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    comment = comment_service.create_comment(
        db, user_id=user_id, event_id=payload.event_id, text=payload.text, clock=clock
    )
    return _serialize_comment(comment)


@app.get("/api/v1/users/{user_id}/comments/{comment_id}")
def api_get_user_comment(user_id: int, comment_id: int, db: Session = Depends(get_db)):
    comment = comment_service.get_own_comment(db, user_id=user_id, comment_id=comment_id)
    return _serialize_comment(comment)


@app.patch("/api/v1/users/{user_id}/comments/{comment_id}")
def api_update_comment(
    user_id: int,
    comment_id: int,
    payload: CommentUpdatePayload,
    db: Session = Depends(get_db),
):
    comment = comment_service.update_comment(
        db, user_id=user_id, comment_id=comment_id, text=payload.text
    )
    return _serialize_comment(comment)


@app.delete("/api/v1/users/{user_id}/comments/{comment_id}", status_code=204)
def api_delete_comment(user_id: int, comment_id: int, db: Session = Depends(get_db)):
    comment_service.delete_comment(db, user_id=user_id, comment_id=comment_id)
    return Response(status_code=204)


def _parse_comment_status(raw: str | None) -> CommentStatus | None:
    if not raw:
        return None
    try:
        return CommentStatus(raw.strip().upper())
    except ValueError as exc:
        raise InvalidInputError(f"Unknown comment status: {raw}") from exc


# Admin


@app.get("/api/v1/admin/events", dependencies=[Depends(require_root)])
def api_admin_search_events(
    users: list[int] | None = Query(None),
    states: list[str] | None = Query(None),
    categories: list[int] | None = Query(None),
    range_start: str | None = Query(None),
    range_end: str | None = Query(None),
    from_: int = Query(0, ge=0, alias="from"),
    size: int = Query(EVENTS_PER_PAGE, ge=1, le=100),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stats: StatsClient = Depends(get_stats),
):
    start, end = _parse_range(range_start, range_end)
    events = crud.search_admin_events(
        db,
        users=users,
        states=_parse_event_states(states),
        categories=categories,
        range_start=start,
        range_end=end,
        offset=from_,
        size=size,
    )
    return _enriched_events(db, events, stats, clock)


@app.patch("/api/v1/admin/events/{event_id}", dependencies=[Depends(require_root)])
def api_admin_update_event(
    event_id: int,
    payload: EventUpdatePayload,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stats: StatsClient = Depends(get_stats),
):
    event = lifecycle.update_event(
        db,
        event_id=event_id,
        actor=lifecycle.Actor.ADMIN,
        changes=_changes_from_payload(payload),
        action=_parse_state_action(payload.state_action, lifecycle.Actor.ADMIN),
        clock=clock,
    )
    db.commit()
    return _enriched_event(db, event, stats, clock)


@app.get("/api/v1/admin/users", dependencies=[Depends(require_root)])
def api_admin_list_users(
    ids: list[int] | None = Query(None),
    from_: int = Query(0, ge=0, alias="from"),
    size: int = Query(EVENTS_PER_PAGE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return [
        _serialize_user(u)
        for u in crud.list_users(db, ids=ids, offset=from_, size=size)
    ]


@app.post("/api/v1/admin/users", status_code=201, dependencies=[Depends(require_root)])
def api_admin_create_user(payload: UserCreatePayload, db: Session = Depends(get_db)):
    return _serialize_user(crud.create_user(db, name=payload.name, email=payload.email))


@app.delete(
    "/api/v1/admin/users/{user_id}",
    status_code=204,
    dependencies=[Depends(require_root)],
)
def api_admin_delete_user(user_id: int, db: Session = Depends(get_db)):
    crud.delete_user(db, user_id)
    return Response(status_code=204)


@app.get("/api/v1/admin/categories", dependencies=[Depends(require_root)])
def api_admin_list_categories(
    from_: int = Query(0, ge=0, alias="from"),
    size: int = Query(EVENTS_PER_PAGE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return [
        _serialize_category(c)
        for c in crud.list_categories(db, offset=from_, size=size)
    ]


@app.post(
    "/api/v1/admin/categories", status_code=201, dependencies=[Depends(require_root)]
)
def api_admin_create_category(payload: CategoryPayload, db: Session = Depends(get_db)):
    return _serialize_category(crud.create_category(db, name=payload.name))


@app.patch(
    "/api/v1/admin/categories/{category_id}", dependencies=[Depends(require_root)]
)
def api_admin_rename_category(
    category_id: int, payload: CategoryPayload, db: Session = Depends(get_db)
):
    category = crud.require_category(db, category_id)
    return _serialize_category(crud.rename_category(db, category, name=payload.name))


@app.delete(
    "/api/v1/admin/categories/{category_id}",
    status_code=204,
    dependencies=[Depends(require_root)],
)
def api_admin_delete_category(category_id: int, db: Session = Depends(get_db)):
    crud.delete_category(db, category_id)
    return Response(status_code=204)


@app.get("/api/v1/admin/comments", dependencies=[Depends(require_root)])
def api_admin_list_comments(
    status: str | None = Query(None),
    event_id: int | None = Query(None),
    from_: int = Query(0, ge=0, alias="from"),
    size: int = Query(EVENTS_PER_PAGE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    found = crud.list_comments(
        db,
        event_ids=[event_id] if event_id is not None else None,
        status=_parse_comment_status(status),
        offset=from_,
        size=size,
    )
    return [_serialize_comment(c) for c in found]


@app.patch("/api/v1/admin/comments/{comment_id}", dependencies=[Depends(require_root)])
def api_admin_moderate_comment(
    comment_id: int, payload: CommentModerationPayload, db: Session = Depends(get_db)
):
    try:
        action = comment_service.ModerationAction(payload.action.strip().upper())
    except ValueError as exc:
        raise InvalidInputError(f"Unknown moderation action: {payload.action}") from exc
    comment = comment_service.moderate_comment(db, comment_id=comment_id, action=action)
    return _serialize_comment(comment)
