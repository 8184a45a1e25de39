import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated

from pydantic import Strict, field_validator
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel, UniqueConstraint

HOURS_PER_WEEK = 7
MAX_DAILY_HOURS = 24
MAX_NOTES_LENGTH = 1000


class TimeEntryStatus(str, Enum):
    draft = "draft"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_utc(value: datetime | None) -> datetime | None:
    """Convert to an aware UTC datetime; naive values are taken as UTC already."""
    if value is None:
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def stamp_submission(fields: dict, now: datetime) -> dict:
    """Set submitted_at when a write moves the entry to 'submitted' without one.

    Applied to both create and update payloads before anything is persisted.
    """
    stamped = dict(fields)
    if stamped.get("status") == TimeEntryStatus.submitted and not stamped.get("submitted_at"):
        stamped["submitted_at"] = now
    return stamped


class TimeEntryBase(SQLModel):
    """Fields and rules every stored time entry must satisfy."""

    user_id: str = Field(index=True, min_length=1)
    week_start: datetime = Field(index=True)
    week_end: datetime
    hours: list[Annotated[float, Strict()]] = Field(sa_column=Column(JSON, nullable=False))
    notes: str = Field(default="", max_length=MAX_NOTES_LENGTH)
    status: TimeEntryStatus = Field(default=TimeEntryStatus.draft, index=True)
    submitted_at: datetime | None = Field(default=None)
    approved_at: datetime | None = Field(default=None)
    approved_by: str | None = Field(default=None)

    @field_validator("user_id", "notes", "approved_by", mode="before")
    @classmethod
    def strip_strings(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("hours")
    @classmethod
    def validate_hours(cls, v):
        if len(v) != HOURS_PER_WEEK or not all(0 <= h <= MAX_DAILY_HOURS for h in v):
            raise ValueError("Hours must be an array of 7 numbers between 0 and 24")
        return v

    @field_validator("week_start", "week_end", "submitted_at", "approved_at")
    @classmethod
    def normalize_dates(cls, v):
        return to_utc(v)


class TimeEntry(TimeEntryBase, table=True):
    __table_args__ = (UniqueConstraint("user_id", "week_start", name="uniq_timeentry_user_week"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
