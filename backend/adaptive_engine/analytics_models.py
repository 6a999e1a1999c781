"""Domain models for analytics snapshots, recommendations and user references."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class Granularity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


RecommendationStatus = Literal["pending", "viewed", "accepted", "dismissed", "completed", "expired"]
ACTIVE_RECOMMENDATION_STATUSES = ("pending", "viewed")

SuggestedTiming = Literal["immediate", "today", "this_week", "next_week", "this_month"]
VALIDITY_DAYS_BY_TIMING: Dict[str, int] = {
    "immediate": 1,
    "today": 2,
    "this_week": 7,
    "next_week": 14,
}
DEFAULT_VALIDITY_DAYS = 30


class UserRef(BaseModel):
    """Lightweight view of a user: identity plus learning profile only."""

    id: str
    email: str
    learning_profile: Dict[str, Any] = Field(default_factory=dict)


class EngagementMetrics(BaseModel):
    total_session_time: float = 0.0
    average_session_duration: float = 0.0
    session_count: int = 0
    interaction_rate: float = 0.0
    focus_score: float = Field(default=0.0, ge=0.0, le=100.0)


class ProgressMetrics(BaseModel):
    modules_started: int = 0
    modules_completed: int = 0
    paths_enrolled: int = 0
    paths_completed: int = 0
    completion_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    average_module_score: float = 0.0


class AIInteractionMetrics(BaseModel):
    total_interactions: int = 0
    satisfaction_score: Optional[float] = Field(default=None, ge=0.0, le=5.0)
    effectiveness_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)


class LearningAnalyticsSnapshot(BaseModel):
    """Immutable point-in-time aggregate for one user at one granularity."""

    model_config = {"frozen": True}

    id: Optional[str] = None
    user_id: str
    granularity: Granularity
    period_start: datetime
    period_end: datetime
    computed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    engagement: EngagementMetrics = Field(default_factory=EngagementMetrics)
    progress: ProgressMetrics = Field(default_factory=ProgressMetrics)
    ai_interaction: AIInteractionMetrics = Field(default_factory=AIInteractionMetrics)


class Recommendation(BaseModel):
    id: Optional[str] = None
    user_id: str
    type: str
    category: str = "General"
    title: str = Field(..., max_length=200)
    description: str
    relevance_score: float = Field(default=0.0, ge=0.0, le=100.0)
    confidence_score: float = Field(default=0.0, ge=0.0, le=100.0)
    priority_score: float = Field(default=0.0, ge=0.0, le=100.0)
    overall_score: int = 0
    status: RecommendationStatus = "pending"
    suggested_timing: SuggestedTiming = "this_week"
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    valid_until: datetime
    context: Dict[str, Any] = Field(default_factory=dict)

    def is_active(self, now: datetime) -> bool:
        return self.status in ACTIVE_RECOMMENDATION_STATUSES and self.valid_until > now


class SweepReport(BaseModel):
    """Outcome of one sweep over a set of users."""

    kind: Literal["regular", "daily"]
    started_at: datetime
    finished_at: Optional[datetime] = None
    processed: int = 0
    errors: int = 0
    skipped: bool = False
    failed: bool = False
    failed_user_ids: List[str] = Field(default_factory=list)
    expired_recommendations: Optional[int] = None
    deleted_analytics: Optional[int] = None


__all__ = [
    "ACTIVE_RECOMMENDATION_STATUSES",
    "AIInteractionMetrics",
    "DEFAULT_VALIDITY_DAYS",
    "EngagementMetrics",
    "Granularity",
    "LearningAnalyticsSnapshot",
    "ProgressMetrics",
    "Recommendation",
    "RecommendationStatus",
    "SuggestedTiming",
    "SweepReport",
    "UserRef",
    "VALIDITY_DAYS_BY_TIMING",
]
