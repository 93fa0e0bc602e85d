from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field


class SessionCreate(BaseModel):
    candidate_name: str = Field(min_length=1, max_length=200)
    candidate_email: EmailStr
    interviewer_notes: Optional[str] = Field(default="", max_length=5000)
    interviewer_name: Optional[str] = Field(default=None, max_length=200)


class SessionStart(BaseModel):
    # Optional join metadata supplied by the candidate client
    candidate_info: Optional[Dict[str, Any]] = None


class SessionResponse(BaseModel):
    session_id: str
    status: str
    candidate_name: str
    candidate_email: str
    interviewer_name: Optional[str] = None
    interviewer_notes: str = ""
    candidate_info: Dict[str, Any] = {}
    max_duration_minutes: Optional[int] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    expires_at: datetime
    candidate_link: str


class SessionDetail(SessionResponse):
    event_counts: Dict[str, int] = {}


class PublicSessionResponse(BaseModel):
    session_id: str
    status: str
    candidate_name: str
    candidate_email: str
    interviewer_name: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    expires_at: datetime
    max_duration_minutes: Optional[int] = None


class SessionStatusResponse(BaseModel):
    session_id: str
    status: str


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int


class SessionListResponse(BaseModel):
    sessions: List[SessionResponse]
    pagination: Pagination
    status_counts: Dict[str, int]


class SignalIngest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    face_count: int = Field(ge=0, validation_alias=AliasChoices("face_count", "faceCount"))
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    object_classes: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("object_classes", "objectClasses")
    )
    reliable: bool = Field(default=False, validation_alias=AliasChoices("reliable", "isRealAI"))


class SignalAck(BaseModel):
    session_id: str
    accepted: bool
