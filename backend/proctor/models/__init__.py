from .session import ProctoringSession, SessionStatus, TERMINAL_STATUSES
from .violation_event import ViolationEvent, ViolationCategory, EventSource
from .report import IntegrityReport, REPORT_VERSION

__all__ = [
    "ProctoringSession",
    "SessionStatus",
    "TERMINAL_STATUSES",
    "ViolationEvent",
    "ViolationCategory",
    "EventSource",
    "IntegrityReport",
    "REPORT_VERSION",
]
