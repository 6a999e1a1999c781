"""Per-user analytics orchestration, the two sweep kinds and retention cleanup."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Tuple

from .active_users import ActiveUserSelector
from .adaptation_engine import AdaptationActionDispatcher, AdaptationRuleEngine
from .analytics_aggregator import AnalyticsAggregator
from .analytics_models import Granularity, SweepReport
from .config import Settings, get_settings
from .db.session import SessionScope, session_scope
from .insight_generator import InsightGenerator
from .recommendation_generator import RecommendationGenerator
from .repositories.learning_analytics import LearningAnalyticsRepository, learning_analytics
from .repositories.recommendations import RecommendationRepository, recommendations
from .repositories.users import UserRepository, users
from .telemetry import emit_event
from .time_windows import Clock, SystemClock, TimeWindowPolicy, resolve_timezone

logger = logging.getLogger(__name__)


class AnalyticsProcessor:
    """Runs the regular (active users) and daily (all users) sweeps.

    Every user is processed inside its own failure boundary and retention runs
    after both sweep kinds without affecting the reported tallies.
    """

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        scope: SessionScope = session_scope,
        policy: Optional[TimeWindowPolicy] = None,
        selector: Optional[ActiveUserSelector] = None,
        aggregator: Optional[AnalyticsAggregator] = None,
        insights: Optional[InsightGenerator] = None,
        user_repository: UserRepository = users,
        analytics_repository: LearningAnalyticsRepository = learning_analytics,
        recommendation_repository: RecommendationRepository = recommendations,
        retention_days: int = 365,
        max_workers: int = 1,
        catch_up_missed_windows: bool = False,
    ) -> None:
        if retention_days < 1:
            raise ValueError("retention_days must be positive")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._clock = clock or SystemClock()
        self._scope = scope
        self._policy = policy or TimeWindowPolicy()
        self._selector = selector or ActiveUserSelector(clock=self._clock, scope=scope)
        self._aggregator = aggregator or AnalyticsAggregator(clock=self._clock, scope=scope)
        self._insights = insights or InsightGenerator(clock=self._clock, scope=scope)
        self._users = user_repository
        self._analytics = analytics_repository
        self._recommendations = recommendation_repository
        self._retention = timedelta(days=retention_days)
        self._max_workers = max_workers
        self._catch_up = catch_up_missed_windows

    # ------------------------------------------------------------------
    # Per-user orchestration
    # ------------------------------------------------------------------

    def granularities_due(self, user_id: str) -> List[Granularity]:
        now = self._clock.now()
        due = [Granularity.DAILY]
        if self._policy.is_new_week(now) or self._missed(
            user_id, Granularity.WEEKLY, self._policy.latest_weekly_anchor(now)
        ):
            due.append(Granularity.WEEKLY)
        if self._policy.is_new_month(now) or self._missed(
            user_id, Granularity.MONTHLY, self._policy.latest_monthly_anchor(now)
        ):
            due.append(Granularity.MONTHLY)
        return due

    def _missed(self, user_id: str, granularity: Granularity, anchor: datetime) -> bool:
        if not self._catch_up:
            return False
        with self._scope() as session:
            last = self._analytics.latest_computed_at(session, user_id, granularity)
        return last is None or last < anchor

    def process_user(self, user_id: str) -> None:
        for granularity in self.granularities_due(user_id):
            self._aggregator.compute_user_analytics(user_id, granularity)
        self._insights.generate_insights(user_id)

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    def process_active_users(self) -> SweepReport:
        report = SweepReport(kind="regular", started_at=self._clock.now())
        started = time.perf_counter()
        try:
            user_ids = [user.id for user in self._selector.get_active_users()]
            logger.info("Processing analytics for %d active user(s)", len(user_ids))
            self._run_isolated(report, user_ids, self.process_user)
        except Exception:  # noqa: BLE001
            report.failed = True
            logger.exception("Regular analytics sweep aborted")
        self._finish(report, started)
        return report

    def run_daily_processing(self) -> SweepReport:
        report = SweepReport(kind="daily", started_at=self._clock.now())
        started = time.perf_counter()
        try:
            with self._scope() as session:
                user_ids = self._users.all_user_ids(session)
            logger.info("Running daily analytics for %d user(s)", len(user_ids))
            self._run_isolated(
                report,
                user_ids,
                lambda user_id: self._aggregator.compute_user_analytics(user_id, Granularity.DAILY),
            )
        except Exception:  # noqa: BLE001
            report.failed = True
            logger.exception("Daily analytics sweep aborted")
        self._finish(report, started)
        return report

    def _run_isolated(self, report: SweepReport, user_ids: Iterable[str], work: Callable[[str], object]) -> None:
        def _attempt(user_id: str) -> Tuple[str, bool]:
            try:
                work(user_id)
                return user_id, True
            except Exception as exc:  # noqa: BLE001
                logger.exception("Analytics processing failed for user %s", user_id)
                emit_event("user_analytics_failed", user_id=user_id, sweep=report.kind, error=str(exc))
                return user_id, False

        if self._max_workers == 1:
            outcomes = [_attempt(user_id) for user_id in user_ids]
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="analytics-sweep") as pool:
                outcomes = list(pool.map(_attempt, user_ids))

        for user_id, ok in outcomes:
            if ok:
                report.processed += 1
            else:
                report.errors += 1
                report.failed_user_ids.append(user_id)

    def _finish(self, report: SweepReport, started: float) -> None:
        report.expired_recommendations, report.deleted_analytics = self.run_retention_cleanup()
        report.finished_at = self._clock.now()
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "%s sweep finished: processed=%d errors=%d",
            report.kind.capitalize(),
            report.processed,
            report.errors,
        )
        emit_event(
            "analytics_sweep",
            kind=report.kind,
            processed=report.processed,
            errors=report.errors,
            duration_ms=duration_ms,
            status="failed" if report.failed else "completed",
        )

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def run_retention_cleanup(self) -> Tuple[Optional[int], Optional[int]]:
        """Expire stale recommendations and reap old analytics; ``None`` marks a failed action."""
        now = self._clock.now()
        expired = self._retention_action(
            "expire_recommendations",
            lambda session: self._recommendations.expire_stale(session, now),
        )
        deleted = self._retention_action(
            "delete_old_analytics",
            lambda session: self._analytics.delete_older_than(session, now - self._retention),
        )
        return expired, deleted

    def _retention_action(self, action: str, operation: Callable[..., int]) -> Optional[int]:
        try:
            with self._scope() as session:
                removed = operation(session)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Retention action %s failed", action)
            emit_event("retention_cleanup", action=action, removed=0, status="failed", error=str(exc))
            return None
        if removed:
            logger.info("Retention action %s removed %d record(s)", action, removed)
        emit_event("retention_cleanup", action=action, removed=removed, status="completed")
        return removed


def create_analytics_processor(
    settings: Optional[Settings] = None,
    *,
    clock: Optional[Clock] = None,
) -> AnalyticsProcessor:
    """Wire the processor and its collaborators from configuration."""
    settings = settings or get_settings()
    clock = clock or SystemClock(resolve_timezone(settings.scheduler_timezone))
    category = settings.adaptation_rule_category
    generator = RecommendationGenerator(clock=clock, category=category)
    rule_engine = AdaptationRuleEngine(
        clock=clock,
        dispatcher=AdaptationActionDispatcher(recommendation_generator=generator),
        category=category,
    )
    insights = InsightGenerator(
        clock=clock,
        recommendation_generator=generator,
        rule_engine=rule_engine,
        refill_threshold=settings.recommendation_refill_threshold,
        target_count=settings.recommendation_target_count,
    )
    return AnalyticsProcessor(
        clock=clock,
        policy=TimeWindowPolicy(daily_hour=settings.daily_processing_hour),
        selector=ActiveUserSelector(clock=clock, window=timedelta(hours=settings.activity_window_hours)),
        aggregator=AnalyticsAggregator(clock=clock),
        insights=insights,
        retention_days=settings.analytics_retention_days,
        max_workers=settings.sweep_max_workers,
        catch_up_missed_windows=settings.catch_up_missed_windows,
    )


__all__ = ["AnalyticsProcessor", "create_analytics_processor"]
