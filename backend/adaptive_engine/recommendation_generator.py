"""Default rule-based recommendation generator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from .analytics_models import (
    DEFAULT_VALIDITY_DAYS,
    VALIDITY_DAYS_BY_TIMING,
    LearningAnalyticsSnapshot,
    Recommendation,
)
from .db.session import SessionScope, session_scope
from .repositories.learning_analytics import LearningAnalyticsRepository, learning_analytics
from .repositories.recommendations import RecommendationRepository, recommendations
from .time_windows import Clock, SystemClock

logger = logging.getLogger(__name__)

LEARNING_PATH_TYPE = "learning_path"

RELEVANCE_WEIGHT = 0.4
CONFIDENCE_WEIGHT = 0.3
PRIORITY_WEIGHT = 0.3


@dataclass(frozen=True)
class _Candidate:
    type: str
    title: str
    description: str
    relevance: float
    confidence: float
    priority: float
    timing: str = "this_week"


def overall_score(relevance: float, confidence: float, priority: float) -> int:
    return round(relevance * RELEVANCE_WEIGHT + confidence * CONFIDENCE_WEIGHT + priority * PRIORITY_WEIGHT)


def _candidates(analytics: Optional[LearningAnalyticsSnapshot], requested_type: Optional[str]) -> List[_Candidate]:
    candidates: List[_Candidate] = []
    if analytics is not None:
        if analytics.progress.completion_rate < 50:
            candidates.append(
                _Candidate(
                    type="schedule_optimization",
                    title="Optimize Your Learning Schedule",
                    description="Based on your learning patterns, adjusting your study schedule could improve your results.",
                    relevance=85,
                    confidence=70,
                    priority=80,
                )
            )
        if analytics.engagement.focus_score < 60:
            candidates.append(
                _Candidate(
                    type="difficulty_adjustment",
                    title="Content Difficulty Adjustment",
                    description="Content that better matches your current skill level may help you stay focused.",
                    relevance=90,
                    confidence=75,
                    priority=85,
                )
            )
        satisfaction = analytics.ai_interaction.satisfaction_score
        if satisfaction is not None and satisfaction < 3:
            candidates.append(
                _Candidate(
                    type="ai_personality",
                    title="Try a Different AI Assistant Style",
                    description="Another AI tutor personality might better match your learning preferences.",
                    relevance=70,
                    confidence=65,
                    priority=60,
                )
            )
    if requested_type == LEARNING_PATH_TYPE:
        candidates.append(
            _Candidate(
                type=LEARNING_PATH_TYPE,
                title="Explore a New Learning Path",
                description="You are ready for a fresh challenge. Browse paths that build on what you have mastered.",
                relevance=80,
                confidence=70,
                priority=75,
            )
        )
        candidates.append(
            _Candidate(
                type=LEARNING_PATH_TYPE,
                title="Deepen Your Current Specialisation",
                description="An advanced path in your strongest area would extend your recent progress.",
                relevance=75,
                confidence=65,
                priority=70,
                timing="next_week",
            )
        )
    return candidates


class RecommendationGenerator:
    """Turns the latest analytics into persisted, pending recommendations."""

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        scope: SessionScope = session_scope,
        recommendation_repository: RecommendationRepository = recommendations,
        analytics_repository: LearningAnalyticsRepository = learning_analytics,
        category: str = "General",
    ) -> None:
        self._clock = clock or SystemClock()
        self._scope = scope
        self._recommendations = recommendation_repository
        self._analytics = analytics_repository
        self._category = category

    def generate_recommendations(
        self,
        user_id: str,
        *,
        context: Optional[LearningAnalyticsSnapshot] = None,
        max_count: int = 5,
        type: Optional[str] = None,
    ) -> List[Recommendation]:
        if max_count <= 0:
            return []
        now = self._clock.now()
        with self._scope() as session:
            analytics = context or self._analytics.latest(session, user_id)
            active_types = self._recommendations.active_types(session, user_id, now)
            selected: List[_Candidate] = []
            for candidate in _candidates(analytics, type):
                if type is not None and candidate.type != type:
                    continue
                # Learning path suggestions come in pairs; other types at most once while active.
                if candidate.type != LEARNING_PATH_TYPE and candidate.type in active_types:
                    continue
                selected.append(candidate)
            selected = selected[:max_count]
            if not selected:
                return []
            created = self._recommendations.create_many(
                session,
                [self._build(user_id, candidate, analytics, now) for candidate in selected],
            )
        logger.info("Generated %d recommendation(s) for user %s", len(created), user_id)
        return created

    def _build(
        self,
        user_id: str,
        candidate: _Candidate,
        analytics: Optional[LearningAnalyticsSnapshot],
        now,
    ) -> Recommendation:
        validity = VALIDITY_DAYS_BY_TIMING.get(candidate.timing, DEFAULT_VALIDITY_DAYS)
        context = {"deep_link": f"/recommendations/{candidate.type}"}
        if analytics is not None:
            context["analytics_id"] = analytics.id
            context["overall_completion"] = analytics.progress.completion_rate
        return Recommendation(
            user_id=user_id,
            type=candidate.type,
            category=self._category,
            title=candidate.title,
            description=candidate.description,
            relevance_score=candidate.relevance,
            confidence_score=candidate.confidence,
            priority_score=candidate.priority,
            overall_score=overall_score(candidate.relevance, candidate.confidence, candidate.priority),
            suggested_timing=candidate.timing,  # type: ignore[arg-type]
            generated_at=now,
            valid_until=now + timedelta(days=validity),
            context=context,
        )


__all__ = ["LEARNING_PATH_TYPE", "RecommendationGenerator", "overall_score"]
