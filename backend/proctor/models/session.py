import enum

from sqlalchemy import Column, Integer, String, DateTime, JSON, Text
from sqlalchemy.sql import func

from ..platform.database import Base


class SessionStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.EXPIRED})


class ProctoringSession(Base):
    __tablename__ = "proctoring_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), unique=True, index=True, nullable=False)
    status = Column(String(20), nullable=False, default=SessionStatus.PENDING.value, index=True)
    candidate_name = Column(String(200), nullable=False)
    candidate_email = Column(String(320), nullable=False)
    interviewer_name = Column(String(200))
    interviewer_notes = Column(Text, default="")
    # Join metadata: name, email, ip_address, user_agent, joined_at, completed_at
    candidate_info = Column(JSON)
    max_duration_minutes = Column(Integer, default=60)
    created_at = Column(DateTime(timezone=True), nullable=False)
    started_at = Column(DateTime(timezone=True))
    ended_at = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
