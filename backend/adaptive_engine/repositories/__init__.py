"""Repositories wrapping SQLAlchemy sessions for the engine's persistence needs."""

from .adaptation_rules import AdaptationRuleRepository, TriggerState, adaptation_rules
from .audit_events import AuditEventRepository, audit_events
from .learning_analytics import LearningAnalyticsRepository, learning_analytics
from .recommendations import RecommendationRepository, recommendations
from .users import UserRepository, users

__all__ = [
    "AdaptationRuleRepository",
    "AuditEventRepository",
    "LearningAnalyticsRepository",
    "RecommendationRepository",
    "TriggerState",
    "UserRepository",
    "adaptation_rules",
    "audit_events",
    "learning_analytics",
    "recommendations",
    "users",
]
