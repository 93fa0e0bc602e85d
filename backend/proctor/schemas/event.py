from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.violation_event import EventSource, ViolationCategory


class EventCreate(BaseModel):
    category: ViolationCategory
    description: str = Field(default="", max_length=1000)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source: EventSource = EventSource.MANUAL_TEST


class EventResponse(BaseModel):
    id: int
    session_id: str
    category: ViolationCategory
    description: str
    confidence: float
    source: EventSource
    sustained_seconds: Optional[float] = None
    object_classes: List[str] = []
    timestamp: datetime
