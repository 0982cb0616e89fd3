"""
Input model and result shapes for admission scoring.

Evidence cards carry numbers, periods and aggregates only; never review text.
"""
from typing import Any, Literal, Optional, TypedDict

from pydantic import BaseModel, Field

AgeBand = Literal["0", "1", "2", "3", "4", "5"]
PriorityType = Literal[
    "dual_income",
    "sibling",
    "single_parent",
    "multi_child",
    "disability",
    "low_income",
    "general",
]
EvidenceType = Literal["to_snapshot", "community_aggregate", "seasonal_factor", "similar_cases"]
Grade = Literal["A", "B", "C", "D", "F"]


class AdmissionScoreQuery(BaseModel):
    facility_id: str = Field(min_length=1, max_length=128)
    child_age_band: AgeBand
    priority_type: PriorityType = "general"
    waiting_position: Optional[int] = Field(default=None, ge=1, le=500)


class EvidenceCard(TypedDict):
    type: EvidenceType
    summary: str
    source_count: int
    confidence: float
    data_points: dict[str, Any]


class AdmissionScoreResult(TypedDict):
    facility_id: str
    facility_name: str
    probability: float  # within score_horizon_months, 0-1
    admission_score: int  # calibrated, 1-99
    grade: Grade
    confidence: float  # 0-1, from posterior dispersion
    estimated_months_median: int
    estimated_months_80th: int
    evidence: list[EvidenceCard]
    region_key: str
    engine_version: str
    calculated_at: str  # ISO-8601 UTC
