from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON

from ..platform.database import Base


REPORT_VERSION = "1.0"


class IntegrityReport(Base):
    __tablename__ = "integrity_reports"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        String(64), ForeignKey("proctoring_sessions.session_id"), unique=True, index=True, nullable=False
    )
    score = Column(Integer, nullable=False)
    total_deductions = Column(Integer, nullable=False, default=0)
    risk_tier = Column(String(16), nullable=False, index=True)
    breakdown = Column(JSON, nullable=False)
    violations = Column(JSON, nullable=False)
    time_analysis = Column(JSON, nullable=False)
    events = Column(JSON, nullable=False)
    duration_seconds = Column(Integer, nullable=False, default=0)
    session_status = Column(String(20))
    candidate_name = Column(String(200))
    candidate_email = Column(String(320))
    interviewer_name = Column(String(200))
    started_at = Column(DateTime(timezone=True))
    ended_at = Column(DateTime(timezone=True))
    generated_at = Column(DateTime(timezone=True), nullable=False, index=True)
    report_version = Column(String(10), nullable=False, default=REPORT_VERSION)
