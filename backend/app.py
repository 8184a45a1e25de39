import logging
import os
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn
from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from db import create_db_and_tables, create_db_engine, get_session
from errors import TimesheetError
from schemas import dump_entry
from service import TimeEntryService
from validation import SCHEMAS, format_errors, validate_request

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database engine on startup and release it on shutdown."""
    engine = create_db_engine()
    create_db_and_tables(engine)
    app.state.engine = engine
    logger.info("Database initialized")
    yield
    engine.dispose()
    logger.info("Database engine disposed")


# Create FastAPI app
app = FastAPI(title="Timesheet Service API", version="1.0.0", lifespan=lifespan)

allowed_origins = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TimesheetError)
async def timesheet_error_handler(request: Request, exc: TimesheetError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Validation failed", "details": format_errors(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc.detail)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


def get_service(session: Session = Depends(get_session)) -> TimeEntryService:
    return TimeEntryService(session)


@app.get("/time-entries")
def list_time_entries(request: Request, service: TimeEntryService = Depends(get_service)):
    """List time entries with optional userId/status/week filters and pagination."""
    query = validate_request(SCHEMAS["list"], query=dict(request.query_params)).query
    logger.info(f"List request - filters: {query.model_dump(exclude_none=True)}")

    entries, pagination = service.list_entries(**query.model_dump())
    return {
        "success": True,
        "data": [dump_entry(e) for e in entries],
        "pagination": pagination.model_dump(),
    }


@app.get("/time-entries/week")
def get_time_entry_for_week(
    user_id: str | None = Query(None, alias="userId", description="User to look up"),
    week_start: str | None = Query(None, alias="weekStart", description="Start of the week (ISO date)"),
    service: TimeEntryService = Depends(get_service),
):
    """Get the entry for a user's week; data is null when none exists."""
    logger.info(f"Week request for user: {user_id}, week: {week_start}")
    entry = service.get_for_week(user_id, week_start)
    return {"success": True, "data": dump_entry(entry)}


@app.get("/time-entries/{entry_id}")
def get_time_entry(entry_id: str, service: TimeEntryService = Depends(get_service)):
    params = validate_request(SCHEMAS["get_by_id"], params={"id": entry_id}).params
    logger.info(f"Get entry request for ID: {params.id}")
    return {"success": True, "data": dump_entry(service.get_by_id(params.id))}


@app.post("/time-entries", status_code=201)
def create_time_entry(payload: Any = Body(None), service: TimeEntryService = Depends(get_service)):
    """Create a time entry; one entry per user and week."""
    body = validate_request(SCHEMAS["create"], body=payload).body
    logger.info(f"Create request for user: {body.user_id}, week: {body.week_start}")

    entry = service.create(body.model_dump())
    return {"success": True, "data": dump_entry(entry), "message": "Time entry created successfully"}


@app.put("/time-entries/{entry_id}")
def update_time_entry(
    entry_id: str,
    payload: Any = Body(None),
    service: TimeEntryService = Depends(get_service),
):
    """Partially update a time entry. Only the supplied fields change."""
    validated = validate_request(SCHEMAS["update"], body=payload, params={"id": entry_id})
    changes = validated.body.model_dump(exclude_unset=True)
    logger.info(f"Update request for ID: {validated.params.id}, fields: {sorted(changes)}")

    entry = service.update(validated.params.id, changes)
    return {"success": True, "data": dump_entry(entry), "message": "Time entry updated successfully"}


@app.delete("/time-entries/{entry_id}")
def delete_time_entry(entry_id: str, service: TimeEntryService = Depends(get_service)):
    params = validate_request(SCHEMAS["delete"], params={"id": entry_id}).params
    logger.info(f"Delete entry request for ID: {params.id}")

    service.delete(params.id)
    return {"success": True, "message": "Time entry deleted successfully"}


@app.get("/health")
def health():
    return {
        "success": True,
        "message": "Timesheet Service is running",
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": os.getenv("ENV", "dev"),
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Timesheet Service API", "docs": "/docs"}


if __name__ == "__main__":
    uvicorn.run("app:app", host="0.0.0.0", port=int(os.getenv("PORT", "3001")))
