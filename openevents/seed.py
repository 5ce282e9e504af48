"""Development helpers for populating fake users, categories and events."""

from __future__ import annotations

import random
from datetime import timedelta

from faker import Faker
from sqlalchemy.orm import Session

from . import crud, lifecycle, participation
from .clock import system_clock
from .database import get_session
from .errors import DomainError
from .models import Category, User
from .storage import init_db

_category_names = [
    "Concerts",
    "Workshops",
    "Exhibitions",
    "Meetups",
    "Sports",
    "Theatre",
    "Lectures",
    "Festivals",
]
_event_types = [
    "Open Air",
    "Masterclass",
    "Hackathon",
    "Jam Session",
    "Field Trip",
    "Tasting",
    "Book Club",
    "Night Run",
]


def seed_fake_data(
    *,
    user_count: int = 10,
    category_count: int = 4,
    event_count: int = 12,
    publish_percentage: int = 70,
    max_requests_per_event: int = 5,
) -> dict[str, int]:
    """Populate the database with synthetic users, events and requests."""
    if user_count < 2:
        raise ValueError("user_count must be >= 2")
    if category_count < 1:
        raise ValueError("category_count must be >= 1")
    if event_count < 0:
        raise ValueError("event_count must be >= 0")
    if not 0 <= publish_percentage <= 100:
        raise ValueError("publish_percentage must be between 0 and 100")
    if max_requests_per_event < 0:
        raise ValueError("max_requests_per_event must be >= 0")

    init_db()
    fake = Faker()
    stats = {"users": 0, "categories": 0, "events": 0, "published": 0, "requests": 0}

    with get_session() as session:
        users = [_create_user(session, fake) for _ in range(user_count)]
        stats["users"] = len(users)
        categories = _ensure_categories(session, category_count)
        stats["categories"] = len(categories)

        for _ in range(event_count):
            initiator = random.choice(users)
            event = _create_event(session, fake, initiator, random.choice(categories))
            stats["events"] += 1
            if random.randint(1, 100) > publish_percentage:
                continue
            lifecycle.update_event(
                session,
                event_id=event.id,
                actor=lifecycle.Actor.ADMIN,
                action=lifecycle.LifecycleAction(
                    lifecycle.Actor.ADMIN, lifecycle.StateAction.PUBLISH_EVENT
                ),
            )
            stats["published"] += 1
            stats["requests"] += _create_requests(
                session, event.id, initiator, users, max_requests_per_event
            )

    return stats


def _create_user(session: Session, fake: Faker) -> User:
    for _ in range(20):
        email = fake.unique.email()
        try:
            return crud.create_user(session, name=fake.name(), email=email)
        except DomainError:
            continue
    raise RuntimeError("Failed to create a unique user email")


def _ensure_categories(session: Session, count: int) -> list[Category]:
    existing = {c.name: c for c in crud.list_categories(session)}
    names = _category_names[:count]
    while len(names) < count:
        names.append(f"Category {len(names) + 1}")
    return [existing.get(name) or crud.create_category(session, name=name) for name in names]


def _create_event(session: Session, fake: Faker, initiator: User, category: Category):
    event_date = system_clock.now() + timedelta(
        days=random.randint(1, 60), hours=random.randint(0, 23)
    )
    limit = random.choice([0, 0, 2, 5, 10, 25])
    return lifecycle.create_event(
        session,
        initiator_id=initiator.id,
        title=f"{fake.city()} {random.choice(_event_types)}",
        annotation=fake.sentence(nb_words=10).ljust(20, "."),
        description=fake.paragraph(nb_sentences=5).ljust(20, "."),
        category_id=category.id,
        location=lifecycle.Location(
            lat=float(fake.latitude()), lon=float(fake.longitude())
        ),
        event_date=event_date,
        paid=random.random() < 0.3,
        participant_limit=limit,
        request_moderation=random.random() < 0.6,
    )


def _create_requests(
    session: Session, event_id: int, initiator: User, users: list[User], limit: int
) -> int:
    candidates = [u for u in users if u.id != initiator.id]
    random.shuffle(candidates)
    created = 0
    for user in candidates[: random.randint(0, limit)]:
        try:
            participation.create_request(session, requester_id=user.id, event_id=event_id)
        except DomainError:
            # Full events stop admitting.
            break
        created += 1
    return created
