import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from models import HOURS_PER_WEEK, MAX_DAILY_HOURS, MAX_NOTES_LENGTH, TimeEntryStatus, to_utc

TrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Notes = Annotated[str, StringConstraints(strip_whitespace=True, max_length=MAX_NOTES_LENGTH)]
DailyHours = Annotated[float, Field(strict=True, ge=0, le=MAX_DAILY_HOURS)]
WeekHours = Annotated[list[DailyHours], Field(min_length=HOURS_PER_WEEK, max_length=HOURS_PER_WEEK)]


class RequestModel(BaseModel):
    """Base for request schemas: camelCase keys, unknown keys dropped."""

    model_config = ConfigDict(alias_generator=to_camel, extra="ignore")


class TimeEntryCreate(RequestModel):
    user_id: TrimmedStr
    week_start: datetime
    week_end: datetime
    hours: WeekHours
    notes: Notes = ""
    status: TimeEntryStatus = TimeEntryStatus.draft
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: TrimmedStr | None = None


class TimeEntryUpdate(RequestModel):
    user_id: TrimmedStr | None = None
    week_start: datetime | None = None
    week_end: datetime | None = None
    hours: WeekHours | None = None
    notes: Notes | None = None
    status: TimeEntryStatus | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: TrimmedStr | None = None


class TimeEntryListQuery(RequestModel):
    user_id: str | None = None
    status: TimeEntryStatus | None = None
    week_start: datetime | None = None
    week_end: datetime | None = None
    limit: int = Field(default=50, ge=1, le=100)
    page: int = Field(default=1, ge=1)


class EntryIdParams(RequestModel):
    id: TrimmedStr


class TimeEntryRead(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: uuid.UUID
    user_id: str
    week_start: datetime
    week_end: datetime
    hours: list[float]
    notes: str
    status: TimeEntryStatus
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("week_start", "week_end", "submitted_at", "approved_at", "created_at", "updated_at")
    @classmethod
    def mark_utc(cls, v):
        # SQLite hands back naive values; they are UTC
        return to_utc(v)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


def dump_entry(entry) -> dict | None:
    """Render a stored entry as its camelCase JSON form."""
    if entry is None:
        return None
    return TimeEntryRead.model_validate(entry).model_dump(mode="json", by_alias=True)
