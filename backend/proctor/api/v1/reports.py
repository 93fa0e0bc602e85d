"""Integrity report routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...components.scoring.schemas import RiskTier
from ...deps import ProctoringServices, get_services
from ...schemas.report import ReportListResponse, ReportResponse

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/", response_model=ReportListResponse)
def list_reports(
    risk_tier: Optional[RiskTier] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    services: ProctoringServices = Depends(get_services),
):
    return services.reports.list_reports(
        page=page,
        limit=limit,
        risk_tier=risk_tier.value if risk_tier else None,
    )


@router.post("/{session_id}", response_model=ReportResponse)
def generate_report(session_id: str, services: ProctoringServices = Depends(get_services)):
    """Score the session's events and replace any earlier report."""
    return services.reports.generate(session_id)


@router.get("/{session_id}", response_model=ReportResponse)
def get_report(session_id: str, services: ProctoringServices = Depends(get_services)):
    return services.reports.get(session_id)
