import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Float, Text, Index

from ..platform.database import Base


class ViolationCategory(str, enum.Enum):
    FOCUS_LOST = "focus_lost"
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    DEVICE_DETECTED = "device_detected"
    MATERIALS_DETECTED = "materials_detected"


class EventSource(str, enum.Enum):
    LIVE_SIGNAL = "live-signal"
    MANUAL_TEST = "manual-test"


class ViolationEvent(Base):
    __tablename__ = "violation_events"
    __table_args__ = (
        Index("ix_violation_events_session_timestamp", "session_id", "timestamp", "id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), ForeignKey("proctoring_sessions.session_id"), nullable=False)
    category = Column(String(32), nullable=False)
    description = Column(Text, default="")
    confidence = Column(Float, nullable=False, default=0.0)
    source = Column(String(20), nullable=False, default=EventSource.LIVE_SIGNAL.value)
    # Seconds the trigger condition held before firing (debounced categories only)
    sustained_seconds = Column(Float)
    object_classes = Column(JSON)
    timestamp = Column(DateTime(timezone=True), nullable=False)
