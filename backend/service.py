import logging
import math
import uuid
from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from errors import (
    BackendUnavailable,
    DuplicateEntry,
    InvalidIdentifier,
    MissingParameters,
    NotFound,
    ValidationFailed,
)
from models import TimeEntry, TimeEntryBase, TimeEntryStatus, stamp_submission, to_utc, utcnow
from schemas import Pagination
from validation import format_errors

logger = logging.getLogger(__name__)

_datetime_adapter = TypeAdapter(datetime)


class TimeEntryService:
    """Lifecycle operations for time entries.

    Holds no state beyond the session it is given; one instance per request.
    """

    def __init__(self, session: Session, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.clock = clock

    @contextmanager
    def _store(self, failure: str):
        """Translate store errors raised inside the block."""
        try:
            yield
        except IntegrityError as e:
            # Only the (user_id, week_start) unique index can be violated here
            self.session.rollback()
            logger.warning(f"Week key conflict: {e.orig}")
            raise DuplicateEntry() from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"{failure}: {str(e)}")
            raise BackendUnavailable(failure) from e

    @staticmethod
    def _parse_id(entry_id) -> uuid.UUID:
        if isinstance(entry_id, uuid.UUID):
            return entry_id
        try:
            return uuid.UUID(str(entry_id).strip())
        except ValueError as e:
            raise InvalidIdentifier() from e

    @staticmethod
    def _check_record(fields: dict) -> TimeEntryBase:
        try:
            return TimeEntryBase.model_validate(fields)
        except ValidationError as e:
            raise ValidationFailed(format_errors(e.errors(), camel_case=True)) from e

    def _find_week(self, user_id: str, week_start: datetime) -> TimeEntry | None:
        stmt = select(TimeEntry).where(TimeEntry.user_id == user_id, TimeEntry.week_start == week_start)
        return self.session.exec(stmt).first()

    def list_entries(
        self,
        user_id: str | None = None,
        status: TimeEntryStatus | None = None,
        week_start: datetime | None = None,
        week_end: datetime | None = None,
        limit: int = 50,
        page: int = 1,
    ) -> tuple[list[TimeEntry], Pagination]:
        """Entries matching every given filter, newest week first.

        ``week_start`` and ``week_end`` are inclusive bounds on the entry's week_start.
        """
        conditions = []
        if user_id:
            conditions.append(TimeEntry.user_id == user_id)
        if status:
            conditions.append(TimeEntry.status == status)
        if week_start:
            conditions.append(TimeEntry.week_start >= to_utc(week_start))
        if week_end:
            conditions.append(TimeEntry.week_start <= to_utc(week_end))

        stmt = select(TimeEntry)
        count_stmt = select(func.count()).select_from(TimeEntry)
        if conditions:
            stmt = stmt.where(*conditions)
            count_stmt = count_stmt.where(*conditions)
        stmt = stmt.order_by(col(TimeEntry.week_start).desc()).offset((page - 1) * limit).limit(limit)

        with self._store("Failed to fetch time entries"):
            entries = list(self.session.exec(stmt).all())
            total = self.session.exec(count_stmt).one()

        pagination = Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit))
        return entries, pagination

    def get_by_id(self, entry_id) -> TimeEntry:
        uid = self._parse_id(entry_id)
        with self._store("Failed to fetch time entry"):
            entry = self.session.get(TimeEntry, uid)
        if entry is None:
            raise NotFound()
        return entry

    def get_for_week(self, user_id: str | None, week_start) -> TimeEntry | None:
        """The entry for a user's week, or None when that week has no entry."""
        if not user_id or not week_start:
            raise MissingParameters()
        try:
            start = to_utc(_datetime_adapter.validate_python(week_start))
        except ValidationError as e:
            raise ValidationFailed(["weekStart: must be a valid date"]) from e

        with self._store("Failed to fetch time entry for week"):
            return self._find_week(user_id.strip(), start)

    def create(self, fields: dict) -> TimeEntry:
        now = self.clock()
        record = self._check_record(stamp_submission(fields, now))

        with self._store("Failed to create time entry"):
            if self._find_week(record.user_id, record.week_start) is not None:
                raise DuplicateEntry()

            entry = TimeEntry(**record.model_dump(), created_at=now, updated_at=now)
            self.session.add(entry)
            self.session.commit()
            self.session.refresh(entry)

        logger.info(f"Created time entry {entry.id} for user {entry.user_id}, week {entry.week_start.date()}")
        return entry

    def update(self, entry_id, changes: dict) -> TimeEntry:
        """Apply a partial update; fields not in ``changes`` are left as they are."""
        uid = self._parse_id(entry_id)
        now = self.clock()

        with self._store("Failed to update time entry"):
            entry = self.session.get(TimeEntry, uid)
            if entry is None:
                raise NotFound()

            changes = {k: v for k, v in changes.items() if k in TimeEntryBase.model_fields}
            changes = stamp_submission(changes, now)
            record = self._check_record({**entry.model_dump(), **changes})
            for key in changes:
                setattr(entry, key, getattr(record, key))
            entry.updated_at = now

            self.session.add(entry)
            self.session.commit()
            self.session.refresh(entry)

        logger.info(f"Updated time entry {entry.id}: {sorted(changes)}")
        return entry

    def delete(self, entry_id) -> None:
        uid = self._parse_id(entry_id)
        with self._store("Failed to delete time entry"):
            entry = self.session.get(TimeEntry, uid)
            if entry is None:
                raise NotFound()
            self.session.delete(entry)
            self.session.commit()
        logger.info(f"Deleted time entry {uid}")
