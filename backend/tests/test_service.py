"""Tests for TimeEntryService against an in-memory database."""
import uuid
from datetime import UTC, datetime, timedelta, timezone

import pytest
from sqlalchemy import inspect
from sqlmodel import select

from errors import DuplicateEntry, InvalidIdentifier, MissingParameters, NotFound, ValidationFailed
from models import TimeEntry, TimeEntryStatus, stamp_submission, to_utc, utcnow
from service import TimeEntryService

NOW = datetime(2024, 1, 5, 12, 0, 0, tzinfo=UTC)

FIELDS = {
    "user_id": "user123",
    "week_start": datetime(2024, 1, 1, tzinfo=UTC),
    "week_end": datetime(2024, 1, 7, 23, 59, 59, tzinfo=UTC),
    "hours": [8, 8, 8, 8, 8, 0, 0],
}


@pytest.fixture
def service(test_session):
    return TimeEntryService(test_session, clock=lambda: NOW)


def test_stamp_submission_sets_time_for_submitted():
    fields = {"status": TimeEntryStatus.submitted}
    stamped = stamp_submission(fields, NOW)
    assert stamped["submitted_at"] == NOW
    assert "submitted_at" not in fields


def test_stamp_submission_keeps_explicit_time():
    explicit = datetime(2024, 1, 3, 9, 0, tzinfo=UTC)
    stamped = stamp_submission({"status": "submitted", "submitted_at": explicit}, NOW)
    assert stamped["submitted_at"] == explicit


@pytest.mark.parametrize("status", [None, "draft", "approved", "rejected"])
def test_stamp_submission_ignores_other_statuses(status):
    fields = {"notes": "x"} if status is None else {"status": status}
    assert stamp_submission(fields, NOW) == fields


def test_create_sets_timestamps(service):
    entry = service.create({**FIELDS, "status": TimeEntryStatus.submitted})
    assert to_utc(entry.created_at) == NOW
    assert to_utc(entry.updated_at) == NOW
    assert to_utc(entry.submitted_at) == NOW
    assert entry.notes == ""


def test_create_rejects_bad_record(service):
    with pytest.raises(ValidationFailed) as exc_info:
        service.create({**FIELDS, "hours": [8, 8, 8, 8, 8]})
    assert exc_info.value.details == ["hours: Hours must be an array of 7 numbers between 0 and 24"]


def test_create_duplicate_via_lookup(service):
    service.create(FIELDS)
    with pytest.raises(DuplicateEntry):
        service.create({**FIELDS, "notes": "again"})


def test_create_duplicate_via_unique_index(service, test_session, monkeypatch):
    """A concurrent writer that slips past the lookup is stopped by the index."""
    first = service.create(FIELDS)
    monkeypatch.setattr(service, "_find_week", lambda user_id, week_start: None)

    with pytest.raises(DuplicateEntry):
        service.create({**FIELDS, "notes": "racing write"})

    entries = test_session.exec(select(TimeEntry)).all()
    assert len(entries) == 1
    assert entries[0].id == first.id
    assert entries[0].notes == ""


def test_update_only_touches_given_fields(test_session):
    clock = iter([NOW, NOW + timedelta(hours=1)])
    service = TimeEntryService(test_session, clock=lambda: next(clock))
    entry = service.create(FIELDS)

    updated = service.update(str(entry.id), {"notes": "  late Friday  ", "status": TimeEntryStatus.submitted})
    assert updated.notes == "late Friday"
    assert to_utc(updated.submitted_at) == NOW + timedelta(hours=1)
    assert to_utc(updated.updated_at) == NOW + timedelta(hours=1)
    assert to_utc(updated.created_at) == NOW
    assert updated.hours == [8, 8, 8, 8, 8, 0, 0]


def test_update_revalidates_merged_record(service):
    entry = service.create(FIELDS)
    with pytest.raises(ValidationFailed) as exc_info:
        service.update(entry.id, {"user_id": None, "hours": [30] * 7})
    details = exc_info.value.details
    assert any(d.startswith("userId") for d in details)
    assert any(d.startswith("hours") for d in details)


def test_status_transitions_are_unconstrained(service):
    entry = service.create({**FIELDS, "status": TimeEntryStatus.approved})
    entry = service.update(entry.id, {"status": TimeEntryStatus.draft})
    assert entry.status == TimeEntryStatus.draft


def test_identifier_errors(service):
    with pytest.raises(InvalidIdentifier):
        service.get_by_id("not-a-uuid")
    with pytest.raises(NotFound):
        service.get_by_id(uuid.uuid4())
    with pytest.raises(NotFound):
        service.update(str(uuid.uuid4()), {"notes": "x"})
    with pytest.raises(InvalidIdentifier):
        service.delete("123")


def test_delete_then_get(service):
    entry = service.create(FIELDS)
    service.delete(str(entry.id))
    with pytest.raises(NotFound):
        service.get_by_id(str(entry.id))


def test_get_for_week(service):
    entry = service.create(FIELDS)
    assert service.get_for_week("user123", "2024-01-01").id == entry.id
    # Same instant expressed with an offset
    assert service.get_for_week("user123", "2024-01-01T01:00:00+01:00").id == entry.id
    assert service.get_for_week("user999", "2024-01-01") is None


@pytest.mark.parametrize("user_id,week_start", [("user123", None), (None, "2024-01-01"), ("", "2024-01-01")])
def test_get_for_week_missing_parameters(service, user_id, week_start):
    with pytest.raises(MissingParameters):
        service.get_for_week(user_id, week_start)


def test_list_entries_filters_and_pages(service):
    for i, user in enumerate(["a", "b", "a"]):
        week_start = datetime(2024, 1, 1, tzinfo=UTC) + timedelta(weeks=i)
        service.create({**FIELDS, "user_id": user, "week_start": week_start})

    entries, pagination = service.list_entries(user_id="a")
    assert [to_utc(e.week_start) for e in entries] == [
        datetime(2024, 1, 15, tzinfo=UTC),
        datetime(2024, 1, 1, tzinfo=UTC),
    ]
    assert pagination.total == 2

    entries, pagination = service.list_entries(
        week_start=datetime(2024, 1, 8, tzinfo=UTC), week_end=datetime(2024, 1, 15, tzinfo=UTC)
    )
    assert len(entries) == 2

    entries, pagination = service.list_entries(limit=2, page=2)
    assert len(entries) == 1
    assert (pagination.total, pagination.pages) == (3, 2)


def test_datetimes_are_aware_utc():
    assert utcnow().tzinfo is UTC
    assert to_utc(datetime(2024, 1, 1)) == datetime(2024, 1, 1, tzinfo=UTC)
    assert to_utc(datetime(2024, 1, 1, 1, tzinfo=timezone(timedelta(hours=1)))).tzinfo is UTC


def test_naive_input_is_stored_as_utc(service):
    entry = service.create({**FIELDS, "week_start": datetime(2024, 1, 1), "week_end": datetime(2024, 1, 7)})
    assert to_utc(entry.week_start) == datetime(2024, 1, 1, tzinfo=UTC)
    assert service.get_for_week("user123", datetime(2024, 1, 1, tzinfo=UTC)).id == entry.id


def test_create_rejects_boolean_hours(service):
    with pytest.raises(ValidationFailed) as exc_info:
        service.create({**FIELDS, "hours": [True, False, 8, 8, 8, 0, 0]})
    assert any(d.startswith("hours.0") for d in exc_info.value.details)


def test_table_indexes(engine):
    indexes = inspect(engine).get_indexes("timeentry")
    single = {tuple(ix["column_names"]) for ix in indexes if not ix["unique"]}
    assert {("user_id",), ("status",), ("week_start",)} <= single

    unique = {tuple(ix["column_names"]) for ix in indexes if ix["unique"]}
    unique |= {tuple(uc["column_names"]) for uc in inspect(engine).get_unique_constraints("timeentry")}
    assert ("user_id", "week_start") in unique
