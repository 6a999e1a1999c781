"""Adaptation rule definitions: trigger conditions, action bundles and defaults."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from .analytics_models import LearningAnalyticsSnapshot

RuleCategory = Literal[
    "content_difficulty",
    "ai_personality",
    "learning_pace",
    "intervention",
    "recommendation",
    "engagement",
    "assessment_timing",
]
AIPersonality = Literal["ARIA", "SAGE", "COACH", "auto"]
AUTO_PERSONALITY = "auto"


def _below(value: Optional[float], bound: Optional[float]) -> bool:
    if bound is None:
        return False
    return value is None or value < bound


def _above(value: Optional[float], bound: Optional[float]) -> bool:
    if bound is None:
        return False
    return value is None or value > bound


class PerformanceConditions(BaseModel):
    min_completion_rate: Optional[float] = Field(default=None, ge=0, le=100)
    max_completion_rate: Optional[float] = Field(default=None, ge=0, le=100)
    min_average_score: Optional[float] = Field(default=None, ge=0, le=100)
    max_average_score: Optional[float] = Field(default=None, ge=0, le=100)

    @model_validator(mode="after")
    def _check_range(self) -> "PerformanceConditions":
        if (
            self.min_completion_rate is not None
            and self.max_completion_rate is not None
            and self.min_completion_rate >= self.max_completion_rate
        ):
            raise ValueError("min_completion_rate must be less than max_completion_rate")
        return self

    def matches(self, analytics: LearningAnalyticsSnapshot) -> bool:
        progress = analytics.progress
        return not (
            _below(progress.completion_rate, self.min_completion_rate)
            or _above(progress.completion_rate, self.max_completion_rate)
            or _below(progress.average_module_score, self.min_average_score)
            or _above(progress.average_module_score, self.max_average_score)
        )


class EngagementConditions(BaseModel):
    min_focus_score: Optional[float] = Field(default=None, ge=0, le=100)
    max_focus_score: Optional[float] = Field(default=None, ge=0, le=100)
    min_sessions: Optional[int] = Field(default=None, ge=0)
    max_sessions: Optional[int] = Field(default=None, ge=0)

    def matches(self, analytics: LearningAnalyticsSnapshot) -> bool:
        engagement = analytics.engagement
        return not (
            _below(engagement.focus_score, self.min_focus_score)
            or _above(engagement.focus_score, self.max_focus_score)
            or _below(engagement.session_count, self.min_sessions)
            or _above(engagement.session_count, self.max_sessions)
        )


class AIInteractionConditions(BaseModel):
    min_satisfaction_score: Optional[float] = Field(default=None, ge=0, le=5)
    max_satisfaction_score: Optional[float] = Field(default=None, ge=0, le=5)
    min_effectiveness_score: Optional[float] = Field(default=None, ge=0, le=100)

    def matches(self, analytics: LearningAnalyticsSnapshot) -> bool:
        ai = analytics.ai_interaction
        return not (
            _below(ai.satisfaction_score, self.min_satisfaction_score)
            or _above(ai.satisfaction_score, self.max_satisfaction_score)
            or _below(ai.effectiveness_score, self.min_effectiveness_score)
        )


class HourWindow(BaseModel):
    start: int = Field(..., ge=0, le=23)
    end: int = Field(..., ge=0, le=23)


class TimingConditions(BaseModel):
    time_of_day: Optional[HourWindow] = None
    days_of_week: List[int] = Field(default_factory=list)
    """Allowed weekdays, 0=Sunday through 6=Saturday."""

    def matches(self, now: datetime) -> bool:
        if self.time_of_day is not None:
            if now.hour < self.time_of_day.start or now.hour > self.time_of_day.end:
                return False
        if self.days_of_week:
            sunday_based = (now.weekday() + 1) % 7
            if sunday_based not in self.days_of_week:
                return False
        return True


class TriggerConditions(BaseModel):
    performance: Optional[PerformanceConditions] = None
    engagement: Optional[EngagementConditions] = None
    ai_interaction: Optional[AIInteractionConditions] = None
    timing: Optional[TimingConditions] = None


class ContentActions(BaseModel):
    adjust_difficulty: Optional[Literal["increase", "decrease", "auto"]] = None
    change_content_format: Optional[Literal["visual", "auditory", "kinesthetic", "reading", "mixed"]] = None
    add_supplementary_resources: bool = False
    enable_hints: bool = False


class AIPersonalityActions(BaseModel):
    switch_to: Optional[AIPersonality] = None
    adjust_tone: Optional[Literal["more_encouraging", "more_direct", "more_detailed", "more_concise"]] = None
    increase_support: bool = False


class PaceActions(BaseModel):
    suggest_break: bool = False
    adjust_session_length: Optional[Literal["shorter", "longer", "adaptive"]] = None
    recommend_schedule: bool = False


class InterventionActions(BaseModel):
    send_notification: bool = False
    schedule_checkin: bool = False


class RecommendationActions(BaseModel):
    suggest_new_path: bool = False


class AdaptationActions(BaseModel):
    """Action bundle applied together when a rule fires; every kind is optional."""

    content: Optional[ContentActions] = None
    ai_personality: Optional[AIPersonalityActions] = None
    pace: Optional[PaceActions] = None
    intervention: Optional[InterventionActions] = None
    recommendations: Optional[RecommendationActions] = None


class RuleContext(BaseModel):
    user_id: str
    now: datetime


class AdaptationRule(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    description: str = ""
    category: RuleCategory
    is_active: bool = True
    is_global: bool = True
    target_user_ids: List[str] = Field(default_factory=list)
    applicable_categories: List[str] = Field(default_factory=list)
    trigger_conditions: TriggerConditions = Field(default_factory=TriggerConditions)
    adaptation_actions: AdaptationActions = Field(default_factory=AdaptationActions)
    priority: int = Field(default=5, ge=1, le=10)
    cooldown_hours: float = Field(default=24.0, gt=0)
    max_triggers_per_user: int = Field(default=10, ge=1)
    total_triggers: int = 0
    successful_adaptations: int = 0
    last_triggered_at: Optional[datetime] = None

    @property
    def cooldown(self) -> timedelta:
        return timedelta(hours=self.cooldown_hours)

    @property
    def success_rate(self) -> float:
        if self.total_triggers == 0:
            return 0.0
        return self.successful_adaptations / self.total_triggers * 100

    def check_conditions(self, analytics: LearningAnalyticsSnapshot, context: RuleContext) -> bool:
        conditions = self.trigger_conditions
        if conditions.performance and not conditions.performance.matches(analytics):
            return False
        if conditions.engagement and not conditions.engagement.matches(analytics):
            return False
        if conditions.ai_interaction and not conditions.ai_interaction.matches(analytics):
            return False
        if conditions.timing and not conditions.timing.matches(context.now):
            return False
        return True

    def is_in_cooldown(self, last_triggered_at: Optional[datetime], now: datetime) -> bool:
        if last_triggered_at is None:
            return False
        return now - last_triggered_at < self.cooldown


DEFAULT_ADAPTATION_RULES: List[Dict[str, Any]] = [
    {
        "name": "Low Completion Rate Intervention",
        "description": "Triggers when user completion rate drops below 30%",
        "category": "intervention",
        "trigger_conditions": {"performance": {"max_completion_rate": 30}},
        "adaptation_actions": {
            "ai_personality": {"switch_to": "COACH", "increase_support": True},
            "intervention": {"send_notification": True, "schedule_checkin": True},
        },
        "priority": 9,
        "cooldown_hours": 48,
    },
    {
        "name": "High Performer Content Boost",
        "description": "Increases difficulty for high-performing users",
        "category": "content_difficulty",
        "trigger_conditions": {"performance": {"min_completion_rate": 85, "min_average_score": 90}},
        "adaptation_actions": {
            "content": {"adjust_difficulty": "increase", "add_supplementary_resources": True},
            "recommendations": {"suggest_new_path": True},
        },
        "priority": 6,
        "cooldown_hours": 72,
    },
    {
        "name": "Low Engagement Recovery",
        "description": "Adapts to re-engage users with low focus scores",
        "category": "engagement",
        "trigger_conditions": {"engagement": {"max_focus_score": 40, "min_sessions": 1}},
        "adaptation_actions": {
            "ai_personality": {"switch_to": "ARIA", "adjust_tone": "more_encouraging"},
            "pace": {"adjust_session_length": "shorter"},
        },
        "priority": 8,
        "cooldown_hours": 24,
    },
    {
        "name": "AI Personality Mismatch Detection",
        "description": "Switches AI personality when satisfaction is low",
        "category": "ai_personality",
        "trigger_conditions": {"ai_interaction": {"max_satisfaction_score": 2}},
        "adaptation_actions": {
            "ai_personality": {"switch_to": "auto", "adjust_tone": "more_detailed"},
        },
        "priority": 7,
        "cooldown_hours": 48,
    },
    {
        "name": "Struggling Learner Support",
        "description": "Provides additional support for struggling learners",
        "category": "content_difficulty",
        "trigger_conditions": {"performance": {"max_average_score": 60}},
        "adaptation_actions": {
            "content": {
                "adjust_difficulty": "decrease",
                "add_supplementary_resources": True,
                "enable_hints": True,
            },
            "ai_personality": {"switch_to": "SAGE", "increase_support": True},
        },
        "priority": 9,
        "cooldown_hours": 24,
    },
]


__all__ = [
    "AIInteractionConditions",
    "AIPersonalityActions",
    "AUTO_PERSONALITY",
    "AdaptationActions",
    "AdaptationRule",
    "ContentActions",
    "DEFAULT_ADAPTATION_RULES",
    "EngagementConditions",
    "HourWindow",
    "InterventionActions",
    "PaceActions",
    "PerformanceConditions",
    "RecommendationActions",
    "RuleContext",
    "TimingConditions",
    "TriggerConditions",
]
