"""Default analytics aggregator: recompute per-user snapshots from activity records."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from statistics import mean
from typing import List, Optional, Sequence, Tuple

from .analytics_models import (
    AIInteractionMetrics,
    EngagementMetrics,
    Granularity,
    LearningAnalyticsSnapshot,
    ProgressMetrics,
)
from .db.models import LearningSessionModel, UserProgressModel
from .db.session import SessionScope, session_scope
from .repositories.learning_analytics import LearningAnalyticsRepository, learning_analytics
from .repositories.users import UserRepository, users
from .time_windows import Clock, SystemClock

logger = logging.getLogger(__name__)

FOCUS_TARGET_MINUTES = 30.0
FOCUS_TARGET_INTERACTIONS_PER_MINUTE = 2.0


def period_boundaries(granularity: Granularity, now: datetime) -> Tuple[datetime, datetime]:
    """Calendar period containing ``now`` in its own timezone.

    Weeks start on Sunday to match the platform's reporting calendar.
    """
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity is Granularity.DAILY:
        return midnight, midnight + timedelta(days=1)
    if granularity is Granularity.WEEKLY:
        days_since_sunday = (now.weekday() + 1) % 7
        start = midnight - timedelta(days=days_since_sunday)
        return start, start + timedelta(days=7)
    start = midnight.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def consistency_score(start_times: Sequence[datetime]) -> float:
    if len(start_times) < 2:
        return 100.0
    per_day = Counter(start.date() for start in start_times)
    average = len(start_times) / len(per_day)
    variance = sum((count - average) ** 2 for count in per_day.values()) / len(per_day)
    return float(round(max(0.0, 100.0 - variance * 20)))


def focus_score(sessions: Sequence[LearningSessionModel]) -> float:
    if not sessions:
        return 0.0
    average_duration = mean(session.duration_minutes or 0.0 for session in sessions)
    duration_points = min(average_duration / FOCUS_TARGET_MINUTES, 1.0) * 40
    consistency_points = consistency_score([session.start_time for session in sessions]) * 0.3

    def _interaction_ratio(session: LearningSessionModel) -> float:
        if not session.duration_minutes:
            return 0.0
        rate = (session.interaction_count or 0) / session.duration_minutes
        return min(rate / FOCUS_TARGET_INTERACTIONS_PER_MINUTE, 1.0)

    interaction_points = mean(_interaction_ratio(session) for session in sessions) * 30
    return float(min(100, round(duration_points + consistency_points + interaction_points)))


def engagement_metrics(sessions: Sequence[LearningSessionModel]) -> EngagementMetrics:
    if not sessions:
        return EngagementMetrics()
    total_time = sum(session.duration_minutes or 0.0 for session in sessions)
    total_interactions = sum(session.interaction_count or 0 for session in sessions)
    return EngagementMetrics(
        total_session_time=round(total_time),
        average_session_duration=round(total_time / len(sessions)),
        session_count=len(sessions),
        interaction_rate=round(total_interactions / total_time, 2) if total_time > 0 else 0.0,
        focus_score=focus_score(sessions),
    )


def progress_metrics(records: Sequence[UserProgressModel]) -> ProgressMetrics:
    if not records:
        return ProgressMetrics()
    completed = [record for record in records if record.completion_status == "completed"]
    scores = [record.final_score for record in records if record.final_score and record.final_score > 0]
    paths = {record.learning_path for record in records if record.learning_path}
    return ProgressMetrics(
        modules_started=len(records),
        modules_completed=len(completed),
        paths_enrolled=len(paths),
        completion_rate=round(len(completed) / len(records) * 100, 2),
        average_module_score=round(mean(scores)) if scores else 0.0,
    )


def ai_interaction_metrics(sessions: Sequence[LearningSessionModel]) -> AIInteractionMetrics:
    ratings: List[float] = [
        min(max(session.satisfaction_rating, 0.0), 5.0)
        for session in sessions
        if session.satisfaction_rating is not None
    ]
    return AIInteractionMetrics(
        total_interactions=sum(session.ai_interaction_count or 0 for session in sessions),
        satisfaction_score=round(mean(ratings), 2) if ratings else None,
    )


class AnalyticsAggregator:
    """Computes and stores a fresh snapshot for one user at one granularity."""

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        scope: SessionScope = session_scope,
        user_repository: UserRepository = users,
        analytics_repository: LearningAnalyticsRepository = learning_analytics,
    ) -> None:
        self._clock = clock or SystemClock()
        self._scope = scope
        self._users = user_repository
        self._analytics = analytics_repository

    def compute_user_analytics(self, user_id: str, granularity: Granularity) -> LearningAnalyticsSnapshot:
        now = self._clock.now()
        start, end = period_boundaries(granularity, now)
        with self._scope() as session:
            if not self._users.exists(session, user_id):
                raise LookupError(f"User '{user_id}' does not exist.")
            sessions = self._users.sessions_between(session, user_id, start, end)
            progress = self._users.progress_between(session, user_id, start, end)
            snapshot = LearningAnalyticsSnapshot(
                user_id=user_id,
                granularity=granularity,
                period_start=start,
                period_end=end,
                computed_at=now,
                engagement=engagement_metrics(sessions),
                progress=progress_metrics(progress),
                ai_interaction=ai_interaction_metrics(sessions),
            )
            stored = self._analytics.create_snapshot(session, snapshot)
        logger.debug(
            "Computed %s analytics for user %s (%d sessions, %d progress records)",
            granularity.value,
            user_id,
            len(sessions),
            len(progress),
        )
        return stored


__all__ = [
    "AnalyticsAggregator",
    "ai_interaction_metrics",
    "consistency_score",
    "engagement_metrics",
    "focus_score",
    "period_boundaries",
    "progress_metrics",
]
