"""SQLAlchemy models for OpenEvents."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from .utils import truncate_to_seconds, utcnow

Base = declarative_base()


def _now() -> datetime:
    return truncate_to_seconds(utcnow())


class EventState(StrEnum):
    PENDING = "PENDING"
    PUBLISHED = "PUBLISHED"
    CANCELED = "CANCELED"


class RequestStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"


class CommentStatus(StrEnum):
    PENDING = "PENDING"
    APPROVE = "APPROVE"
    REJECT = "REJECT"


def _enum_column(enum_cls, default):
    return Column(
        Enum(enum_cls, native_enum=False, length=16, validate_strings=True),
        nullable=False,
        default=default,
    )


class Meta(Base):
    __tablename__ = "meta"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(250), nullable=False)
    email = Column(String(254), nullable=False, unique=True)

    events = relationship("Event", back_populates="initiator")


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True)

    events = relationship("Event", back_populates="category")


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (Index("ix_events_state_event_date", "state", "event_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(120), nullable=False)
    annotation = Column(String(2000), nullable=False)
    description = Column(Text, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    initiator_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    location_lat = Column(Float, nullable=False)
    location_lon = Column(Float, nullable=False)
    event_date = Column(DateTime, nullable=False)
    created_on = Column(DateTime, default=_now, nullable=False)
    published_on = Column(DateTime, nullable=True)
    paid = Column(Boolean, default=False, nullable=False)
    participant_limit = Column(Integer, default=0, nullable=False)
    request_moderation = Column(Boolean, default=True, nullable=False)
    state = _enum_column(EventState, EventState.PENDING)

    category = relationship("Category", back_populates="events")
    initiator = relationship("User", back_populates="events")
    requests = relationship(
        "ParticipationRequest",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="ParticipationRequest.id",
    )
    comments = relationship(
        "Comment",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="desc(Comment.created_on)",
    )

    @property
    def is_unlimited(self) -> bool:
        return self.participant_limit == 0


class ParticipationRequest(Base):
    __tablename__ = "requests"
    __table_args__ = (
        UniqueConstraint("requester_id", "event_id", name="uq_requests_requester_event"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requester_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status = _enum_column(RequestStatus, RequestStatus.PENDING)
    created = Column(DateTime, default=_now, nullable=False)

    event = relationship("Event", back_populates="requests")
    requester = relationship("User")


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (
        UniqueConstraint("author_id", "event_id", name="uq_comments_author_event"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    text = Column(String(255), nullable=False)
    created_on = Column(DateTime, default=_now, nullable=False)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = _enum_column(CommentStatus, CommentStatus.PENDING)

    author = relationship("User")
    event = relationship("Event", back_populates="comments")
