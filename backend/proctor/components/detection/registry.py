"""Table of live debouncers keyed by session id, tied to the session lifecycle."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from ...models.session import SessionStatus
from ...models.violation_event import EventSource
from ...platform.config import DetectionPolicy, settings
from ...platform.request_context import bind_session_id, reset_session_id
from ..events.event_log import EventLog
from ..sessions.lifecycle import SessionLifecycle
from .debouncer import SignalDebouncer
from .scheduler import Scheduler, ThreadingScheduler
from .signals import SignalSample, Violation

logger = logging.getLogger(__name__)


class DetectionRegistry:
    def __init__(
        self,
        lifecycle: SessionLifecycle,
        event_log: EventLog,
        scheduler: Optional[Scheduler] = None,
        policy: Optional[DetectionPolicy] = None,
    ):
        self._lifecycle = lifecycle
        self._event_log = event_log
        self._scheduler = scheduler or ThreadingScheduler()
        self._policy = policy or settings.detection_policy
        self._guard = threading.Lock()
        self._debouncers: Dict[str, SignalDebouncer] = {}
        lifecycle.add_listener(self._on_session_closed)

    def active_sessions(self) -> List[str]:
        with self._guard:
            return list(self._debouncers)

    def debouncer_for(self, session_id: str) -> Optional[SignalDebouncer]:
        with self._guard:
            return self._debouncers.get(session_id)

    def _ensure_debouncer(self, session_id: str) -> SignalDebouncer:
        with self._guard:
            debouncer = self._debouncers.get(session_id)
            if debouncer is None:
                debouncer = SignalDebouncer(session_id, self._record, self._scheduler, self._policy)
                self._debouncers[session_id] = debouncer
            return debouncer

    def _record(self, session_id: str, violation: Violation) -> None:
        self._event_log.append(
            session_id,
            violation.category,
            description=violation.description,
            confidence=violation.confidence,
            source=EventSource.LIVE_SIGNAL,
            sustained_seconds=violation.sustained_seconds,
            object_classes=violation.object_classes,
        )

    def ingest(self, session_id: str, sample: SignalSample) -> bool:
        """Feed one sample to the session's debouncer.

        Returns False when the session is not ``active``; the sample is dropped
        and no timer is armed. Raises ``SessionNotFound`` for unknown sessions.
        """
        ctx_token = bind_session_id(session_id)
        try:
            # Holding the session lock keeps a concurrent complete() from
            # landing between the status check and arming a timer.
            with self._lifecycle.locks.hold(session_id):
                status = self._lifecycle.status_of(session_id)
                if status != SessionStatus.ACTIVE:
                    logger.debug("Sample dropped; session status=%s", status.value)
                    self.release(session_id)
                    return False
                self._ensure_debouncer(session_id).process(sample)
                return True
        finally:
            reset_session_id(ctx_token)

    def release(self, session_id: str) -> None:
        with self._guard:
            debouncer = self._debouncers.pop(session_id, None)
        if debouncer is not None:
            debouncer.close()
            logger.info("Detection stopped session_id=%s", session_id)

    def _on_session_closed(self, session_id: str, status: SessionStatus) -> None:
        self.release(session_id)

    def shutdown(self) -> None:
        for session_id in self.active_sessions():
            self.release(session_id)
