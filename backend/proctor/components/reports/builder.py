"""Integrity report orchestration: score a session's events and upsert one report."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ...models.report import IntegrityReport, REPORT_VERSION
from ...platform.config import DetectionPolicy
from ...shared.utils import ensure_utc, utcnow
from ..errors import ReportNotFound
from ..events.event_log import EventLog, event_snapshot
from ..scoring.analytics import compute_time_analysis
from ..scoring.engine import score_events, session_duration_seconds
from ..scoring.schemas import RiskTier
from ..sessions.lifecycle import SessionLifecycle
from ..sessions.locks import SessionLocks

logger = logging.getLogger(__name__)


def report_to_dict(report: IntegrityReport) -> Dict[str, Any]:
    return {
        "session_id": report.session_id,
        "candidate_name": report.candidate_name,
        "candidate_email": report.candidate_email,
        "interviewer_name": report.interviewer_name,
        "session_status": report.session_status,
        "started_at": ensure_utc(report.started_at),
        "ended_at": ensure_utc(report.ended_at),
        "duration_seconds": report.duration_seconds,
        "score": report.score,
        "total_deductions": report.total_deductions,
        "breakdown": report.breakdown,
        "risk_tier": report.risk_tier,
        "violations": report.violations,
        "time_analysis": report.time_analysis,
        "events": report.events,
        "generated_at": ensure_utc(report.generated_at),
        "report_version": report.report_version,
    }


class ReportBuilder:
    def __init__(
        self,
        session_factory: sessionmaker,
        lifecycle: SessionLifecycle,
        event_log: EventLog,
        clock: Callable[[], datetime] = utcnow,
        policy: Optional[DetectionPolicy] = None,
    ):
        self._session_factory = session_factory
        self._lifecycle = lifecycle
        self._event_log = event_log
        self._clock = clock
        self._policy = policy
        # Separate from the session locks so generation never blocks appends.
        self._report_locks = SessionLocks()

    def generate(self, session_id: str) -> Dict[str, Any]:
        """Score the current event snapshot and replace the session's report."""
        with self._report_locks.hold(session_id):
            session = self._lifecycle.get(session_id)
            events = self._event_log.list_by_session(session_id)

            result = score_events(events)
            violations = {category: item.count for category, item in result.breakdown.items()}
            violations["total"] = len(events)

            fields = {
                "score": result.score,
                "total_deductions": result.total_deductions,
                "risk_tier": result.risk_tier.value,
                "breakdown": {key: item.model_dump(mode="json") for key, item in result.breakdown.items()},
                "violations": violations,
                "time_analysis": compute_time_analysis(events, self._policy),
                "events": [event_snapshot(event) for event in events],
                "duration_seconds": session_duration_seconds(events, session["started_at"], session["ended_at"]),
                "session_status": session["status"],
                "candidate_name": session["candidate_name"],
                "candidate_email": session["candidate_email"],
                "interviewer_name": session["interviewer_name"],
                "started_at": session["started_at"],
                "ended_at": session["ended_at"],
                "generated_at": self._clock(),
                "report_version": REPORT_VERSION,
            }
            payload = self._upsert(session_id, fields)

        logger.info(
            "Integrity report generated session_id=%s score=%d risk_tier=%s events=%d",
            session_id,
            payload["score"],
            payload["risk_tier"],
            len(events),
        )
        return payload

    def _upsert(self, session_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        with self._session_factory() as db:
            report = db.query(IntegrityReport).filter(IntegrityReport.session_id == session_id).first()
            if report is None:
                report = IntegrityReport(session_id=session_id, **fields)
                db.add(report)
                try:
                    db.commit()
                except IntegrityError:
                    # Another process inserted first; overwrite its row.
                    db.rollback()
                    report = db.query(IntegrityReport).filter(IntegrityReport.session_id == session_id).one()
                    for key, value in fields.items():
                        setattr(report, key, value)
                    db.commit()
            else:
                for key, value in fields.items():
                    setattr(report, key, value)
                db.commit()
            db.refresh(report)
            return report_to_dict(report)

    def get(self, session_id: str) -> Dict[str, Any]:
        with self._session_factory() as db:
            report = db.query(IntegrityReport).filter(IntegrityReport.session_id == session_id).first()
            if not report:
                raise ReportNotFound("Report not found", session_id=session_id)
            return report_to_dict(report)

    def list_reports(
        self,
        page: int = 1,
        limit: int = 10,
        risk_tier: Optional[str] = None,
    ) -> Dict[str, Any]:
        page = max(1, page)
        limit = max(1, min(100, limit))
        with self._session_factory() as db:
            query = db.query(IntegrityReport)
            if risk_tier:
                query = query.filter(IntegrityReport.risk_tier == RiskTier(risk_tier.upper()).value)
            total = query.count()
            rows = (
                query.order_by(IntegrityReport.generated_at.desc(), IntegrityReport.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            reports = [report_to_dict(row) for row in rows]
        return {
            "reports": reports,
            "pagination": {
                "current_page": page,
                "total_pages": (total + limit - 1) // limit,
                "total_count": total,
                "has_next": page * limit < total,
                "has_prev": page > 1,
            },
        }
