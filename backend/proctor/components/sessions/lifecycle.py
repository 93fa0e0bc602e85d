"""Session lifecycle: create, start, complete and lazy deadline expiry.

Status moves ``pending -> active -> completed``; ``expired`` is reachable from
``pending`` or ``active`` only when the deadline passes. Every transition is a
compare-and-set on the persisted status so two racing callers cannot both win.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session, sessionmaker

from ...models.session import ProctoringSession, SessionStatus, TERMINAL_STATUSES
from ...platform.config import settings
from ...shared.utils import ensure_utc, utcnow
from ..errors import InputValidationError, InvalidTransition, SessionExpired, SessionNotFound
from .locks import SessionLocks

logger = logging.getLogger(__name__)

SessionListener = Callable[[str, SessionStatus], None]


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def candidate_link(session_id: str) -> str:
    return f"/candidate/{session_id}"


def session_to_dict(record: ProctoringSession) -> Dict[str, Any]:
    return {
        "session_id": record.session_id,
        "status": SessionStatus(record.status).value,
        "candidate_name": record.candidate_name,
        "candidate_email": record.candidate_email,
        "interviewer_name": record.interviewer_name,
        "interviewer_notes": record.interviewer_notes or "",
        "candidate_info": dict(record.candidate_info or {}),
        "max_duration_minutes": record.max_duration_minutes,
        "created_at": ensure_utc(record.created_at),
        "started_at": ensure_utc(record.started_at),
        "ended_at": ensure_utc(record.ended_at),
        "expires_at": ensure_utc(record.expires_at),
        "candidate_link": candidate_link(record.session_id),
    }


PUBLIC_FIELDS = (
    "session_id",
    "status",
    "candidate_name",
    "candidate_email",
    "interviewer_name",
    "created_at",
    "started_at",
    "ended_at",
    "expires_at",
    "max_duration_minutes",
)


class SessionLifecycle:
    def __init__(
        self,
        session_factory: sessionmaker,
        locks: Optional[SessionLocks] = None,
        clock: Callable[[], datetime] = utcnow,
        expiry_days: Optional[int] = None,
        max_duration_minutes: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self._locks = locks or SessionLocks()
        self._clock = clock
        self._expiry_days = expiry_days if expiry_days is not None else settings.SESSION_EXPIRY_DAYS
        self._max_duration_minutes = (
            max_duration_minutes if max_duration_minutes is not None else settings.SESSION_MAX_DURATION_MINUTES
        )
        self._listeners: List[SessionListener] = []

    @property
    def locks(self) -> SessionLocks:
        return self._locks

    def add_listener(self, listener: SessionListener) -> None:
        """Register a callback invoked after a session leaves ``active`` or ``pending``."""
        self._listeners.append(listener)

    def _notify(self, session_id: str, status: SessionStatus) -> None:
        for listener in list(self._listeners):
            try:
                listener(session_id, status)
            except Exception:
                logger.exception("Session listener failed session_id=%s status=%s", session_id, status.value)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _load(db: Session, session_id: str) -> ProctoringSession:
        record = db.query(ProctoringSession).filter(ProctoringSession.session_id == session_id).first()
        if not record:
            raise SessionNotFound("Session not found", session_id=session_id)
        return record

    @staticmethod
    def _compare_and_set(
        db: Session,
        session_id: str,
        expected: Iterable[SessionStatus],
        values: Dict[str, Any],
    ) -> bool:
        """Apply ``values`` only if the persisted status is still one of ``expected``."""
        result = db.execute(
            update(ProctoringSession)
            .where(
                ProctoringSession.session_id == session_id,
                ProctoringSession.status.in_([s.value for s in expected]),
            )
            .values(**values)
        )
        db.commit()
        return result.rowcount == 1

    def _expire_if_due(self, db: Session, record: ProctoringSession, now: datetime) -> bool:
        status = SessionStatus(record.status)
        if status in TERMINAL_STATUSES:
            return False
        deadline = ensure_utc(record.expires_at)
        if deadline is None or now <= deadline:
            return False
        values: Dict[str, Any] = {"status": SessionStatus.EXPIRED.value}
        if status == SessionStatus.ACTIVE:
            values["ended_at"] = deadline
        expired = self._compare_and_set(db, record.session_id, (status,), values)
        db.refresh(record)
        if expired:
            logger.info("Session expired session_id=%s previous_status=%s", record.session_id, status.value)
        return expired

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(
        self,
        candidate_name: str,
        candidate_email: str,
        interviewer_notes: str = "",
        interviewer_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        name = (candidate_name or "").strip()
        email = (candidate_email or "").strip()
        if not name or not email:
            raise InputValidationError("Candidate name and email are required")

        now = self._clock()
        record = ProctoringSession(
            session_id=uuid.uuid4().hex,
            status=SessionStatus.PENDING.value,
            candidate_name=name,
            candidate_email=email,
            interviewer_name=interviewer_name,
            interviewer_notes=interviewer_notes or "",
            candidate_info={"name": name, "email": email, "joined_at": None, "completed_at": None},
            max_duration_minutes=self._max_duration_minutes,
            created_at=now,
            expires_at=now + timedelta(days=self._expiry_days),
        )
        with self._session_factory() as db:
            db.add(record)
            db.commit()
            db.refresh(record)
            snapshot = session_to_dict(record)
        logger.info("Session created session_id=%s", snapshot["session_id"])
        return snapshot

    def check_expiry(self, session_id: str) -> Dict[str, Any]:
        """Read a session, persisting ``expired`` first if its deadline has passed."""
        expired = False
        with self._locks.hold(session_id):
            with self._session_factory() as db:
                record = self._load(db, session_id)
                expired = self._expire_if_due(db, record, self._clock())
                snapshot = session_to_dict(record)
        if expired:
            self._notify(session_id, SessionStatus.EXPIRED)
        return snapshot

    def get(self, session_id: str) -> Dict[str, Any]:
        return self.check_expiry(session_id)

    def get_public(self, session_id: str) -> Dict[str, Any]:
        snapshot = self.check_expiry(session_id)
        return {key: snapshot[key] for key in PUBLIC_FIELDS}

    def status_of(self, session_id: str) -> SessionStatus:
        return SessionStatus(self.check_expiry(session_id)["status"])

    def start(self, session_id: str, join_metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        closed: Optional[SessionStatus] = None
        try:
            with self._locks.hold(session_id):
                with self._session_factory() as db:
                    record = self._load(db, session_id)
                    now = self._clock()
                    if self._expire_if_due(db, record, now):
                        closed = SessionStatus.EXPIRED
                        raise SessionExpired("Session has expired", session_id=session_id)
                    status = SessionStatus(record.status)
                    if status == SessionStatus.ACTIVE:
                        raise InvalidTransition(
                            "Session is already active", session_id=session_id, current_status=status.value
                        )
                    if status in TERMINAL_STATUSES:
                        raise InvalidTransition(
                            f"Session is {status.value} and cannot be started",
                            session_id=session_id,
                            current_status=status.value,
                        )

                    link_deadline = ensure_utc(record.expires_at)
                    candidate_info = {
                        **(record.candidate_info or {}),
                        **(join_metadata or {}),
                        "joined_at": now.isoformat(),
                    }
                    max_minutes = record.max_duration_minutes or self._max_duration_minutes
                    deadline = min(link_deadline, now + timedelta(minutes=max_minutes))
                    started = self._compare_and_set(
                        db,
                        session_id,
                        (SessionStatus.PENDING,),
                        {
                            "status": SessionStatus.ACTIVE.value,
                            "started_at": now,
                            "expires_at": deadline,
                            "candidate_info": candidate_info,
                        },
                    )
                    db.refresh(record)
                    if not started:
                        raise InvalidTransition(
                            "Session was started concurrently",
                            session_id=session_id,
                            current_status=record.status,
                        )
                    snapshot = session_to_dict(record)
        finally:
            if closed is not None:
                self._notify(session_id, closed)
        logger.info("Session started session_id=%s", session_id)
        return snapshot

    def complete(self, session_id: str) -> Dict[str, Any]:
        closed: Optional[SessionStatus] = None
        try:
            with self._locks.hold(session_id):
                with self._session_factory() as db:
                    record = self._load(db, session_id)
                    now = self._clock()
                    if self._expire_if_due(db, record, now):
                        closed = SessionStatus.EXPIRED
                    status = SessionStatus(record.status)
                    if status != SessionStatus.ACTIVE:
                        raise InvalidTransition(
                            "Session is not active", session_id=session_id, current_status=status.value
                        )
                    candidate_info = {**(record.candidate_info or {}), "completed_at": now.isoformat()}
                    completed = self._compare_and_set(
                        db,
                        session_id,
                        (SessionStatus.ACTIVE,),
                        {
                            "status": SessionStatus.COMPLETED.value,
                            "ended_at": now,
                            "candidate_info": candidate_info,
                        },
                    )
                    db.refresh(record)
                    if not completed:
                        raise InvalidTransition(
                            "Session changed state concurrently",
                            session_id=session_id,
                            current_status=record.status,
                        )
                    closed = SessionStatus.COMPLETED
                    snapshot = session_to_dict(record)
        finally:
            if closed is not None:
                self._notify(session_id, closed)
        logger.info("Session completed session_id=%s", session_id)
        return snapshot

    def expire_due(self) -> List[str]:
        """Expire every non-terminal session whose deadline has passed."""
        now = self._clock()
        with self._session_factory() as db:
            candidates = [
                row.session_id
                for row in db.query(ProctoringSession.session_id)
                .filter(
                    ProctoringSession.status.in_([SessionStatus.PENDING.value, SessionStatus.ACTIVE.value]),
                    ProctoringSession.expires_at < now,
                )
                .all()
            ]
        expired = []
        for session_id in candidates:
            if self.check_expiry(session_id)["status"] == SessionStatus.EXPIRED.value:
                expired.append(session_id)
        return expired

    def list_sessions(
        self,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        self.expire_due()
        page = max(1, page)
        limit = max(1, min(100, limit))
        with self._session_factory() as db:
            query = db.query(ProctoringSession)
            if status and status != "all":
                query = query.filter(ProctoringSession.status == SessionStatus(status).value)
            total_matching = query.count()
            rows = (
                query.order_by(ProctoringSession.created_at.desc(), ProctoringSession.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            sessions = [session_to_dict(row) for row in rows]
            grouped = (
                db.query(ProctoringSession.status, func.count(ProctoringSession.id))
                .group_by(ProctoringSession.status)
                .all()
            )

        counts = {s.value: 0 for s in SessionStatus}
        for status_value, count in grouped:
            counts[status_value] = count
        counts["total"] = sum(counts[s.value] for s in SessionStatus)

        return {
            "sessions": sessions,
            "pagination": {
                "current_page": page,
                "total_pages": (total_matching + limit - 1) // limit,
                "total_count": total_matching,
            },
            "status_counts": counts,
        }
