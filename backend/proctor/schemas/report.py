from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..components.scoring.schemas import CategoryDeduction, RiskTier


class ReportResponse(BaseModel):
    session_id: str
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    interviewer_name: Optional[str] = None
    session_status: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: int
    score: int
    total_deductions: int
    breakdown: Dict[str, CategoryDeduction]
    risk_tier: RiskTier
    violations: Dict[str, int]
    time_analysis: Dict[str, Any]
    events: List[Dict[str, Any]]
    generated_at: datetime
    report_version: str


class ReportPagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next: bool
    has_prev: bool


class ReportListResponse(BaseModel):
    reports: List[ReportResponse]
    pagination: ReportPagination
