"""Keep each user's recommendation queue topped up, then run adaptation rules."""

from __future__ import annotations

import logging
from typing import Optional

from .adaptation_engine import AdaptationRuleEngine
from .db.session import SessionScope, session_scope
from .recommendation_generator import RecommendationGenerator
from .repositories.learning_analytics import LearningAnalyticsRepository, learning_analytics
from .repositories.recommendations import RecommendationRepository, recommendations
from .time_windows import Clock, SystemClock

logger = logging.getLogger(__name__)


class InsightGenerator:
    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        scope: SessionScope = session_scope,
        recommendation_repository: RecommendationRepository = recommendations,
        analytics_repository: LearningAnalyticsRepository = learning_analytics,
        recommendation_generator: Optional[RecommendationGenerator] = None,
        rule_engine: Optional[AdaptationRuleEngine] = None,
        refill_threshold: int = 3,
        target_count: int = 5,
    ) -> None:
        self._clock = clock or SystemClock()
        self._scope = scope
        self._recommendations = recommendation_repository
        self._analytics = analytics_repository
        self._generator = recommendation_generator or RecommendationGenerator(clock=self._clock, scope=scope)
        self._rule_engine = rule_engine or AdaptationRuleEngine(clock=self._clock, scope=scope)
        self._refill_threshold = refill_threshold
        self._target_count = target_count

    def generate_insights(self, user_id: str) -> int:
        """Refill recommendations if the user is running low; returns how many were requested."""
        now = self._clock.now()
        with self._scope() as session:
            active = self._recommendations.count_active(session, user_id, now)
            latest = self._analytics.latest(session, user_id) if active < self._refill_threshold else None

        requested = 0
        if latest is not None:
            requested = max(self._target_count - active, 0)
            logger.debug("User %s has %d active recommendation(s); requesting %d", user_id, active, requested)
            self._generator.generate_recommendations(user_id, context=latest, max_count=requested)

        self._rule_engine.evaluate_user(user_id)
        return requested


__all__ = ["InsightGenerator"]
