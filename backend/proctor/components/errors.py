"""Domain errors raised by the proctoring services.

Each error is scoped to a single session operation and carries the HTTP status
the API layer answers with.
"""

from __future__ import annotations

from typing import Optional


class ProctoringError(Exception):
    status_code = 400
    code = "proctoring_error"

    def __init__(self, message: str, *, session_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.session_id = session_id


class InputValidationError(ProctoringError):
    status_code = 400
    code = "validation_error"


class InvalidTransition(ProctoringError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, message: str, *, session_id: Optional[str] = None, current_status: Optional[str] = None):
        super().__init__(message, session_id=session_id)
        self.current_status = current_status


class NotFound(ProctoringError):
    status_code = 404
    code = "not_found"


class SessionNotFound(NotFound):
    code = "session_not_found"


class ReportNotFound(NotFound):
    code = "report_not_found"


class SessionNotActive(ProctoringError):
    status_code = 409
    code = "session_not_active"


class SessionExpired(ProctoringError):
    status_code = 410
    code = "session_expired"
