from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from db import create_db_and_tables, create_db_engine
from models import TimeEntry, TimeEntryStatus
from service import TimeEntryService

SAMPLE_ENTRIES = [
    {
        "user_id": "alice.johnson",
        "week_start": "2024-01-01T00:00:00Z",
        "week_end": "2024-01-07T23:59:59Z",
        "hours": [8, 8, 8, 8, 8, 0, 0],
        "notes": "Sprint 1 planning and delivery",
        "status": TimeEntryStatus.approved,
        "submitted_at": "2024-01-05T17:00:00Z",
        "approved_at": "2024-01-08T09:30:00Z",
        "approved_by": "manager.lee",
    },
    {
        "user_id": "alice.johnson",
        "week_start": "2024-01-08T00:00:00Z",
        "week_end": "2024-01-14T23:59:59Z",
        "hours": [8, 7.5, 8, 8, 6, 0, 0],
        "notes": "Left early Friday",
        "status": TimeEntryStatus.submitted,
    },
    {
        "user_id": "bob.smith",
        "week_start": "2024-01-08T00:00:00Z",
        "week_end": "2024-01-14T23:59:59Z",
        "hours": [9, 9, 9, 9, 4, 2, 0],
        "status": TimeEntryStatus.draft,
    },
    {
        "user_id": "carol.davis",
        "week_start": "2024-01-08T00:00:00Z",
        "week_end": "2024-01-14T23:59:59Z",
        "hours": [0, 0, 8, 8, 8, 0, 0],
        "notes": "Vacation Monday and Tuesday",
        "status": TimeEntryStatus.rejected,
    },
]


def seed_database(engine: Engine) -> int:
    """Seed the database with sample timesheets. Returns the number inserted."""
    with Session(engine) as session:
        # Check if data already exists
        existing = session.exec(select(TimeEntry)).first()
        if existing:
            print("Database already has data, skipping seed.")
            return 0

        service = TimeEntryService(session)
        for fields in SAMPLE_ENTRIES:
            service.create(dict(fields))

    print(f"Database seeded with {len(SAMPLE_ENTRIES)} time entries!")
    return len(SAMPLE_ENTRIES)


if __name__ == "__main__":
    engine = create_db_engine()
    create_db_and_tables(engine)
    seed_database(engine)
