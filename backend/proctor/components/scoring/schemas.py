"""Pydantic models describing the integrity scoring result."""

from __future__ import annotations

import enum
from typing import Dict

from pydantic import BaseModel, ConfigDict


class RiskTier(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class CategoryDeduction(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    label: str
    count: int = 0
    points_each: int
    deduction: int = 0
    severity: RiskTier


class IntegrityScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int
    base_score: int = 100
    total_deductions: int
    breakdown: Dict[str, CategoryDeduction]
    risk_tier: RiskTier
