"""Append-only violation event log keyed by proctoring session."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import sessionmaker

from ...models.session import ProctoringSession, SessionStatus
from ...models.violation_event import EventSource, ViolationCategory, ViolationEvent
from ...shared.utils import ensure_utc, isoformat_or_none, utcnow
from ..errors import InputValidationError, SessionNotActive, SessionNotFound
from ..sessions.lifecycle import SessionLifecycle
from ..sessions.locks import SessionLocks

logger = logging.getLogger(__name__)


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value or 0.0)
    except (TypeError, ValueError):
        raise InputValidationError("confidence must be a number")
    return round(max(0.0, min(1.0, confidence)), 2)


def event_to_dict(event: ViolationEvent) -> Dict[str, Any]:
    return {
        "id": event.id,
        "session_id": event.session_id,
        "category": ViolationCategory(event.category).value,
        "description": event.description or "",
        "confidence": float(event.confidence or 0.0),
        "source": EventSource(event.source).value,
        "sustained_seconds": event.sustained_seconds,
        "object_classes": list(event.object_classes or []),
        "timestamp": ensure_utc(event.timestamp),
    }


def event_snapshot(event: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-storable copy of a serialized event (timestamp as ISO string)."""
    return {**event, "timestamp": isoformat_or_none(event["timestamp"])}


class EventLog:
    def __init__(
        self,
        session_factory: sessionmaker,
        locks: Optional[SessionLocks] = None,
        clock: Callable[[], datetime] = utcnow,
        lifecycle: Optional[SessionLifecycle] = None,
    ):
        self._session_factory = session_factory
        self._locks = locks or SessionLocks()
        self._clock = clock
        # Persists the expiry when an append finds the deadline passed
        self._lifecycle = lifecycle

    def append(
        self,
        session_id: str,
        category: ViolationCategory | str,
        description: str = "",
        confidence: float = 0.0,
        source: EventSource | str = EventSource.LIVE_SIGNAL,
        sustained_seconds: Optional[float] = None,
        object_classes: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Append one event; the owning session must be ``active`` at this moment."""
        if not category:
            raise InputValidationError("Event category is required")
        try:
            category = ViolationCategory(category)
            source = EventSource(source)
        except ValueError as exc:
            raise InputValidationError(str(exc)) from exc
        confidence = _clamp_confidence(confidence)

        with self._locks.hold(session_id):
            with self._session_factory() as db:
                record = (
                    db.query(ProctoringSession.status, ProctoringSession.expires_at)
                    .filter(ProctoringSession.session_id == session_id)
                    .first()
                )
                if not record:
                    raise SessionNotFound("Session not found", session_id=session_id)
                now = self._clock()
                deadline = ensure_utc(record.expires_at)
                past_deadline = bool(deadline and now > deadline)
                if record.status == SessionStatus.ACTIVE.value and not past_deadline:
                    event = self._insert(db, session_id, category, description, confidence, source,
                                         sustained_seconds, object_classes, now)
                    stored = event_to_dict(event)
                else:
                    stored = None

            if stored is None:
                if past_deadline and self._lifecycle is not None:
                    # Same lock is re-entered; listeners release the session's detectors.
                    self._lifecycle.check_expiry(session_id)
                raise SessionNotActive("Can only log events for active sessions", session_id=session_id)

        logger.info(
            "Violation logged session_id=%s category=%s source=%s confidence=%.2f",
            session_id,
            category.value,
            source.value,
            confidence,
        )
        return stored

    @staticmethod
    def _insert(
        db,
        session_id: str,
        category: ViolationCategory,
        description: str,
        confidence: float,
        source: EventSource,
        sustained_seconds: Optional[float],
        object_classes: Optional[Sequence[str]],
        now: datetime,
    ) -> ViolationEvent:
        event = ViolationEvent(
            session_id=session_id,
            category=category.value,
            description=description or "",
            confidence=confidence,
            source=source.value,
            sustained_seconds=sustained_seconds,
            object_classes=list(object_classes) if object_classes else None,
            timestamp=now,
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    def _require_session(self, db, session_id: str) -> None:
        exists = db.query(ProctoringSession.id).filter(ProctoringSession.session_id == session_id).first()
        if not exists:
            raise SessionNotFound("Session not found", session_id=session_id)

    def list_by_session(self, session_id: str) -> List[Dict[str, Any]]:
        """Events ordered by timestamp, ties broken by insertion order."""
        with self._session_factory() as db:
            self._require_session(db, session_id)
            rows = (
                db.query(ViolationEvent)
                .filter(ViolationEvent.session_id == session_id)
                .order_by(ViolationEvent.timestamp.asc(), ViolationEvent.id.asc())
                .all()
            )
            return [event_to_dict(row) for row in rows]

    def counts_by_category(self, session_id: str) -> Dict[str, int]:
        with self._session_factory() as db:
            self._require_session(db, session_id)
            grouped = (
                db.query(ViolationEvent.category, func.count(ViolationEvent.id))
                .filter(ViolationEvent.session_id == session_id)
                .group_by(ViolationEvent.category)
                .all()
            )
        counts = {category.value: 0 for category in ViolationCategory}
        for category, count in grouped:
            counts[category] = count
        return counts
