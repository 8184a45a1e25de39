"""Request validation for the time entry operations.

Each operation is described by an ``OperationSchema`` whose parts are pydantic
models. ``validate_request`` is the single evaluator: it checks every part,
collects all violations and either returns the normalized data or raises
``ValidationFailed``.
"""
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from errors import ValidationFailed
from schemas import EntryIdParams, TimeEntryCreate, TimeEntryListQuery, TimeEntryUpdate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationSchema:
    body: type[BaseModel] | None = None
    query: type[BaseModel] | None = None
    params: type[BaseModel] | None = None


@dataclass
class ValidatedRequest:
    body: BaseModel | None = None
    query: BaseModel | None = None
    params: BaseModel | None = None


SCHEMAS = {
    "create": OperationSchema(body=TimeEntryCreate),
    "update": OperationSchema(body=TimeEntryUpdate, params=EntryIdParams),
    "get_by_id": OperationSchema(params=EntryIdParams),
    "delete": OperationSchema(params=EntryIdParams),
    "list": OperationSchema(query=TimeEntryListQuery),
}


def format_errors(errors: list[dict], camel_case: bool = False) -> list[str]:
    """Turn pydantic error dicts into ``"<field>: <message>"`` strings."""
    messages = []
    for err in errors:
        parts = [str(p) for p in err["loc"]]
        if camel_case and parts:
            parts[0] = to_camel(parts[0])
        field = ".".join(parts)
        msg = err["msg"]
        if err["type"] == "value_error":
            msg = msg.removeprefix("Value error, ")
        messages.append(f"{field}: {msg}" if field else msg)
    return messages


def _check(model: type[BaseModel], data: Any, section: str, errors: list[str]) -> BaseModel | None:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        errors.append(f"{section}: must be an object")
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors.extend(format_errors(e.errors()))
        return None


def validate_request(
    schema: OperationSchema,
    body: Any = None,
    query: dict | None = None,
    params: dict | None = None,
) -> ValidatedRequest:
    """Validate body, query and path params against ``schema``.

    Violations from all three parts are reported together, in that order.
    """
    errors: list[str] = []
    result = ValidatedRequest()

    if schema.body is not None:
        result.body = _check(schema.body, body, "body", errors)
    if schema.query is not None:
        result.query = _check(schema.query, query, "query", errors)
    if schema.params is not None:
        result.params = _check(schema.params, params, "params", errors)

    if errors:
        logger.info(f"Request rejected with {len(errors)} validation error(s)")
        raise ValidationFailed(errors)
    return result
