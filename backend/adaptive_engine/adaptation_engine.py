"""Adaptation rule evaluation and action dispatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Literal, Optional

from .adaptation_models import AUTO_PERSONALITY, AdaptationRule, RuleContext
from .analytics_models import LearningAnalyticsSnapshot
from .collaborators import (
    ContentDeliveryClient,
    NotificationClient,
    SchedulingClient,
    TelemetryContentDeliveryClient,
    TelemetryNotificationClient,
    TelemetrySchedulingClient,
)
from .db.session import SessionScope, session_scope
from .recommendation_generator import LEARNING_PATH_TYPE, RecommendationGenerator
from .repositories.adaptation_rules import AdaptationRuleRepository, adaptation_rules
from .repositories.learning_analytics import LearningAnalyticsRepository, learning_analytics
from .repositories.users import UserRepository, users
from .telemetry import emit_event
from .time_windows import Clock, SystemClock

logger = logging.getLogger(__name__)

ActionStatus = Literal["applied", "skipped", "failed"]
PATH_SUGGESTION_COUNT = 2


@dataclass(frozen=True)
class ActionResult:
    kind: str
    status: ActionStatus
    detail: str = ""

    @property
    def failed(self) -> bool:
        return self.status == "failed"


class AdaptationActionDispatcher:
    """Apply each action kind in a rule's bundle, isolating failures per kind."""

    def __init__(
        self,
        *,
        scope: SessionScope = session_scope,
        user_repository: UserRepository = users,
        recommendation_generator: Optional[RecommendationGenerator] = None,
        notifications: Optional[NotificationClient] = None,
        scheduling: Optional[SchedulingClient] = None,
        content: Optional[ContentDeliveryClient] = None,
    ) -> None:
        self._scope = scope
        self._users = user_repository
        self._generator = recommendation_generator or RecommendationGenerator(scope=scope)
        self._notifications = notifications or TelemetryNotificationClient()
        self._scheduling = scheduling or TelemetrySchedulingClient()
        self._content = content or TelemetryContentDeliveryClient()
        self._handlers: Dict[str, Callable[[str, AdaptationRule, LearningAnalyticsSnapshot], ActionResult]] = {
            "content": self._apply_content,
            "ai_personality": self._apply_ai_personality,
            "pace": self._apply_pace,
            "intervention": self._apply_intervention,
            "recommendations": self._apply_recommendations,
        }

    def dispatch(
        self,
        user_id: str,
        rule: AdaptationRule,
        analytics: LearningAnalyticsSnapshot,
    ) -> List[ActionResult]:
        results: List[ActionResult] = []
        actions = rule.adaptation_actions
        for kind, handler in self._handlers.items():
            if getattr(actions, kind) is None:
                continue
            try:
                result = handler(user_id, rule, analytics)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Adaptation action %s failed for user %s (rule=%s)", kind, user_id, rule.name)
                emit_event(
                    "adaptation_action_failed",
                    user_id=user_id,
                    rule=rule.name,
                    action=kind,
                    error=str(exc),
                )
                result = ActionResult(kind=kind, status="failed", detail=str(exc))
            results.append(result)
        return results

    def _apply_content(self, user_id: str, rule: AdaptationRule, analytics: LearningAnalyticsSnapshot) -> ActionResult:
        adjustments = rule.adaptation_actions.content.model_dump(exclude_none=True)  # type: ignore[union-attr]
        self._content.request_content_adaptation(user_id, adjustments, rule_name=rule.name)
        return ActionResult(kind="content", status="applied")

    def _apply_pace(self, user_id: str, rule: AdaptationRule, analytics: LearningAnalyticsSnapshot) -> ActionResult:
        adjustments = rule.adaptation_actions.pace.model_dump(exclude_none=True)  # type: ignore[union-attr]
        self._scheduling.request_pace_adaptation(user_id, adjustments, rule_name=rule.name)
        return ActionResult(kind="pace", status="applied")

    def _apply_ai_personality(
        self, user_id: str, rule: AdaptationRule, analytics: LearningAnalyticsSnapshot
    ) -> ActionResult:
        target = rule.adaptation_actions.ai_personality.switch_to  # type: ignore[union-attr]
        if target is None or target == AUTO_PERSONALITY:
            # "auto" means the tutoring layer keeps choosing per session.
            return ActionResult(kind="ai_personality", status="skipped", detail=f"switch_to={target}")
        with self._scope() as session:
            self._users.update_learning_profile_field(session, user_id, "ai_personality", target)
        logger.info("Switched AI personality for user %s to %s (rule=%s)", user_id, target, rule.name)
        return ActionResult(kind="ai_personality", status="applied", detail=target)

    def _apply_intervention(
        self, user_id: str, rule: AdaptationRule, analytics: LearningAnalyticsSnapshot
    ) -> ActionResult:
        intervention = rule.adaptation_actions.intervention
        if intervention is None:
            raise ValueError(f"Rule {rule.name} has no intervention actions")
        performed: List[str] = []
        if intervention.send_notification:
            self._notifications.send_intervention(user_id, rule_name=rule.name, reason=rule.description)
            performed.append("notification")
        if intervention.schedule_checkin:
            self._scheduling.schedule_checkin(user_id, rule_name=rule.name)
            performed.append("checkin")
        if not performed:
            return ActionResult(kind="intervention", status="skipped")
        return ActionResult(kind="intervention", status="applied", detail=",".join(performed))

    def _apply_recommendations(
        self, user_id: str, rule: AdaptationRule, analytics: LearningAnalyticsSnapshot
    ) -> ActionResult:
        actions = rule.adaptation_actions.recommendations
        if actions is None or not actions.suggest_new_path:
            return ActionResult(kind="recommendations", status="skipped")
        created = self._generator.generate_recommendations(
            user_id,
            context=analytics,
            max_count=PATH_SUGGESTION_COUNT,
            type=LEARNING_PATH_TYPE,
        )
        return ActionResult(kind="recommendations", status="applied", detail=f"created={len(created)}")


class AdaptationRuleEngine:
    """Evaluate applicable rules against a user's latest analytics and fire matches."""

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        scope: SessionScope = session_scope,
        rule_repository: AdaptationRuleRepository = adaptation_rules,
        analytics_repository: LearningAnalyticsRepository = learning_analytics,
        dispatcher: Optional[AdaptationActionDispatcher] = None,
        category: str = "General",
    ) -> None:
        self._clock = clock or SystemClock()
        self._scope = scope
        self._rules = rule_repository
        self._analytics = analytics_repository
        self._dispatcher = dispatcher or AdaptationActionDispatcher(scope=scope)
        self._category = category

    def evaluate_user(self, user_id: str) -> List[str]:
        """Return the names of the rules that fired for ``user_id``."""
        now = self._clock.now()
        with self._scope() as session:
            analytics = self._analytics.latest(session, user_id)
            if analytics is None:
                logger.debug("No analytics for user %s; skipping rule evaluation", user_id)
                return []
            rules = self._rules.applicable_rules(session, user_id, self._category)

        context = RuleContext(user_id=user_id, now=now)
        fired: List[str] = []
        for rule in rules:
            try:
                if self._evaluate_rule(rule, analytics, context):
                    fired.append(rule.name)
            except Exception:  # noqa: BLE001
                logger.exception("Failed to evaluate adaptation rule %s for user %s", rule.name, user_id)
        return fired

    def _evaluate_rule(self, rule: AdaptationRule, analytics: LearningAnalyticsSnapshot, context: RuleContext) -> bool:
        if not rule.check_conditions(analytics, context):
            return False
        if rule.id is None:
            raise LookupError(f"Adaptation rule {rule.name} has not been persisted")
        with self._scope() as session:
            state = self._rules.trigger_state(session, rule.id, context.user_id)
        if rule.is_in_cooldown(state.last_triggered_at, context.now):
            logger.debug("Rule %s is cooling down for user %s", rule.name, context.user_id)
            return False
        if state.trigger_count >= rule.max_triggers_per_user:
            logger.debug("Rule %s reached its trigger limit for user %s", rule.name, context.user_id)
            return False

        results = self._dispatcher.dispatch(context.user_id, rule, analytics)
        successful = not any(result.failed for result in results)
        with self._scope() as session:
            self._rules.record_trigger(session, rule.id, context.user_id, context.now, successful=successful)

        logger.info("Adaptation rule %s fired for user %s", rule.name, context.user_id)
        emit_event(
            "adaptation_rule_triggered",
            user_id=context.user_id,
            rule=rule.name,
            category=rule.category,
            successful=successful,
            actions={result.kind: result.status for result in results},
        )
        return True


__all__ = ["ActionResult", "AdaptationActionDispatcher", "AdaptationRuleEngine"]
