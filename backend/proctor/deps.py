"""Service wiring and FastAPI dependencies."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import sessionmaker

from .components.detection.registry import DetectionRegistry
from .components.detection.scheduler import Scheduler
from .components.events.event_log import EventLog
from .components.reports.builder import ReportBuilder
from .components.sessions.lifecycle import SessionLifecycle
from .components.sessions.locks import SessionLocks
from .platform.config import DetectionPolicy
from .platform.database import SessionLocal
from .shared.utils import utcnow


@dataclass
class ProctoringServices:
    lifecycle: SessionLifecycle
    events: EventLog
    detection: DetectionRegistry
    reports: ReportBuilder


def build_services(
    session_factory: sessionmaker = SessionLocal,
    scheduler: Optional[Scheduler] = None,
    clock: Callable[[], datetime] = utcnow,
    policy: Optional[DetectionPolicy] = None,
) -> ProctoringServices:
    # Lifecycle and event log share locks so appends and transitions serialize per session.
    locks = SessionLocks()
    lifecycle = SessionLifecycle(session_factory, locks=locks, clock=clock)
    events = EventLog(session_factory, locks=locks, clock=clock, lifecycle=lifecycle)
    detection = DetectionRegistry(lifecycle, events, scheduler=scheduler, policy=policy)
    reports = ReportBuilder(session_factory, lifecycle, events, clock=clock, policy=policy)
    return ProctoringServices(lifecycle=lifecycle, events=events, detection=detection, reports=reports)


_services: Optional[ProctoringServices] = None
_services_lock = threading.Lock()


def get_services() -> ProctoringServices:
    """FastAPI dependency returning the process-wide service container."""
    global _services
    with _services_lock:
        if _services is None:
            _services = build_services()
        return _services


def shutdown_services() -> None:
    global _services
    with _services_lock:
        if _services is not None:
            _services.detection.shutdown()
        _services = None
