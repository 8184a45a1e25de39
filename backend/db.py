import logging
import os

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import models  # noqa: F401  registers the timeentry table

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    """Resolve the database URL from the environment.

    Defaults to a local SQLite file; refuses that fallback in production.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        env = os.getenv("ENV", "dev").lower()
        if env in ("prod", "production"):
            raise RuntimeError(
                "DATABASE_URL missing in production; refusing to start with SQLite. "
                "Please configure DATABASE_URL environment variable."
            )
        db_path = os.getenv("DATABASE_PATH", "./timesheets.db")
        database_url = f"sqlite:///{db_path}"

    # Hosted Postgres often hands out postgres://, SQLAlchemy wants postgresql://
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def create_db_engine(database_url: str | None = None) -> Engine:
    database_url = database_url or get_database_url()

    kwargs = {"echo": False}
    if database_url.startswith("sqlite"):
        # Request handlers run in a threadpool
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    db_driver = database_url.split(":", 1)[0] if ":" in database_url else "unknown"
    logger.info(f"DB_URL_DRIVER={db_driver}")
    return create_engine(database_url, **kwargs)


def create_db_and_tables(engine: Engine):
    """Create tables and indexes if they don't exist.
    This is safe to call multiple times - it won't wipe existing data.
    """
    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    """Get database session bound to the application's engine."""
    with Session(request.app.state.engine) as session:
        yield session
