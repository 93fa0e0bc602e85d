"""Session routes: thin handlers that delegate to the service layer."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ...components.detection.signals import SignalSample
from ...deps import ProctoringServices, get_services
from ...models.session import SessionStatus
from ...platform.middleware import get_client_ip
from ...schemas.event import EventCreate, EventResponse
from ...schemas.session import (
    PublicSessionResponse,
    SessionCreate,
    SessionDetail,
    SessionListResponse,
    SessionResponse,
    SessionStart,
    SessionStatusResponse,
    SignalAck,
    SignalIngest,
)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post("/", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    data: SessionCreate,
    services: ProctoringServices = Depends(get_services),
):
    """Create a pending session and return its shareable candidate link."""
    return services.lifecycle.create(
        candidate_name=data.candidate_name,
        candidate_email=str(data.candidate_email),
        interviewer_notes=data.interviewer_notes or "",
        interviewer_name=data.interviewer_name,
    )


@router.get("/", response_model=SessionListResponse)
def list_sessions(
    status_filter: Optional[SessionStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    services: ProctoringServices = Depends(get_services),
):
    return services.lifecycle.list_sessions(
        status=status_filter.value if status_filter else None,
        page=page,
        limit=limit,
    )


@router.get("/{session_id}", response_model=SessionDetail)
def get_session(session_id: str, services: ProctoringServices = Depends(get_services)):
    session = services.lifecycle.get(session_id)
    return {**session, "event_counts": services.events.counts_by_category(session_id)}


@router.get("/{session_id}/public", response_model=PublicSessionResponse)
def get_public_session(session_id: str, services: ProctoringServices = Depends(get_services)):
    return services.lifecycle.get_public(session_id)


@router.post("/{session_id}/start", response_model=SessionStatusResponse)
def start_session(
    session_id: str,
    request: Request,
    data: Optional[SessionStart] = None,
    services: ProctoringServices = Depends(get_services),
):
    join_metadata = dict((data.candidate_info if data else None) or {})
    join_metadata["ip_address"] = get_client_ip(request)
    join_metadata["user_agent"] = request.headers.get("user-agent")
    session = services.lifecycle.start(session_id, join_metadata)
    return {"session_id": session["session_id"], "status": session["status"]}


@router.post("/{session_id}/complete", response_model=SessionStatusResponse)
def complete_session(session_id: str, services: ProctoringServices = Depends(get_services)):
    session = services.lifecycle.complete(session_id)
    return {"session_id": session["session_id"], "status": session["status"]}


@router.post("/{session_id}/signals", response_model=SignalAck, status_code=status.HTTP_202_ACCEPTED)
def ingest_signal(
    session_id: str,
    data: SignalIngest,
    services: ProctoringServices = Depends(get_services),
):
    """Feed one perception sample; inactive sessions drop it without error."""
    sample = SignalSample(
        face_count=data.face_count,
        confidence=data.confidence,
        object_classes=tuple(data.object_classes),
        reliable=data.reliable,
    )
    accepted = services.detection.ingest(session_id, sample)
    return {"session_id": session_id, "accepted": accepted}


@router.post("/{session_id}/events", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
def log_event(
    session_id: str,
    data: EventCreate,
    services: ProctoringServices = Depends(get_services),
):
    """Record a violation directly, bypassing debounce and cooldown."""
    return services.events.append(
        session_id,
        data.category,
        description=data.description,
        confidence=data.confidence,
        source=data.source,
    )


@router.get("/{session_id}/events", response_model=List[EventResponse])
def list_events(session_id: str, services: ProctoringServices = Depends(get_services)):
    return services.events.list_by_session(session_id)
