from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class MatchingRules(BaseModel):
    exclude_declined: bool = False
    exclude_canceled: bool = False


class ScoringWeights(BaseModel):
    model_config = ConfigDict(extra="allow")

    interest_match: Optional[int] = Field(default=None, ge=0)
    same_work_field: Optional[int] = Field(default=None, ge=0)
    rules: MatchingRules = Field(default_factory=MatchingRules)


class MatchingConfigRequest(BaseModel):
    max_requests_per_user: Optional[int] = Field(default=None, ge=1, le=50)
    scoring_weights: Optional[ScoringWeights] = None


class MatchingConfig(BaseModel):
    event_id: UUID
    max_requests_per_user: int
    scoring_weights: Dict[str, Any]
    updated_at: Optional[datetime] = None
    is_default: bool = False


class MatchingRunResult(BaseModel):
    batch_id: UUID
    count: int
    message: str


class MatchRecommendation(BaseModel):
    id: UUID
    event_id: UUID
    user_id: UUID
    recommended_user_id: UUID
    score: int
    match_reasons: Dict[str, Any] = Field(default_factory=dict)
    batch_id: UUID
    created_at: Optional[datetime] = None
    recommended_profile: Optional[Dict[str, Any]] = None


class MatchRecommendationsList(BaseModel):
    items: List[MatchRecommendation]
