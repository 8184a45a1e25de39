"""Error taxonomy for the timesheet service.

Every failure the service can report is a ``TimesheetError`` subclass. The HTTP
layer renders them as ``{"success": false, "error": ..., "details": [...]}``.
"""


class TimesheetError(Exception):
    status_code = 500
    error = "Internal server error"

    def __init__(self, error: str | None = None, details: list[str] | None = None):
        if error is not None:
            self.error = error
        self.details = details
        super().__init__(self.error)

    def to_response(self) -> dict:
        body = {"success": False, "error": self.error}
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailed(TimesheetError):
    """One or more field rules were violated. Always carries every violation."""

    status_code = 400
    error = "Validation failed"

    def __init__(self, details: list[str]):
        super().__init__(details=list(details))


class InvalidIdentifier(TimesheetError):
    status_code = 400
    error = "Invalid time entry ID"


class NotFound(TimesheetError):
    status_code = 404
    error = "Time entry not found"


class DuplicateEntry(TimesheetError):
    status_code = 400
    error = "Time entry already exists for this week"


class MissingParameters(TimesheetError):
    status_code = 400
    error = "userId and weekStart are required"


class BackendUnavailable(TimesheetError):
    status_code = 500
    error = "Internal server error"
