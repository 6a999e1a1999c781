from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, List, Tuple

import pytest

from adaptive_engine.analytics_models import Granularity, LearningAnalyticsSnapshot
from adaptive_engine.analytics_processor import AnalyticsProcessor, create_analytics_processor
from adaptive_engine.config import get_settings
from adaptive_engine.db.models import LearningSessionModel, UserModel, UserProgressModel
from adaptive_engine.db.session import session_scope
from adaptive_engine.repositories import adaptation_rules, learning_analytics, recommendations, users
from adaptive_engine.repositories.recommendations import RecommendationRepository
from adaptive_engine.telemetry import register_listener, unregister_listener


def _at(text: str) -> datetime:
    return datetime.fromisoformat(text).replace(tzinfo=timezone.utc)


class RecordingAggregator:
    def __init__(self, failing: Tuple[str, ...] = ()) -> None:
        self.failing = failing
        self.calls: List[Tuple[str, Granularity]] = []
        self._lock = threading.Lock()

    def compute_user_analytics(self, user_id: str, granularity: Granularity) -> None:
        with self._lock:
            self.calls.append((user_id, granularity))
        if user_id in self.failing:
            raise RuntimeError(f"aggregation failed for {user_id}")


class RecordingInsights:
    def __init__(self) -> None:
        self.users: List[str] = []

    def generate_insights(self, user_id: str) -> int:
        self.users.append(user_id)
        return 0


class BrokenSelector:
    def get_active_users(self) -> list:
        raise RuntimeError("activity store unavailable")


class BrokenRecommendationRepository(RecommendationRepository):
    def expire_stale(self, session, now) -> int:
        raise RuntimeError("recommendations table locked")


def _seed_users(now: datetime, active: Tuple[str, ...] = (), inactive: Tuple[str, ...] = ()) -> None:
    with session_scope() as session:
        for user_id in active + inactive:
            session.add(UserModel(id=user_id, email=f"{user_id}@example.com"))
        session.flush()
        for user_id in active:
            session.add(LearningSessionModel(user_id=user_id, start_time=now - timedelta(hours=1), duration_minutes=20))
        for user_id in inactive:
            session.add(LearningSessionModel(user_id=user_id, start_time=now - timedelta(days=3), duration_minutes=20))


class _Events:
    def __init__(self) -> None:
        self.events: List[Any] = []

    def __call__(self, event: Any) -> None:
        self.events.append(event)

    def named(self, name: str) -> List[Any]:
        return [event for event in self.events if event.name == name]


@pytest.fixture
def events():
    recorder = _Events()
    register_listener(recorder)
    yield recorder
    unregister_listener(recorder)


def test_failing_user_does_not_stop_the_sweep(database, make_clock, events) -> None:
    clock = make_clock()
    _seed_users(clock.now(), active=("user-a", "user-b", "user-c"), inactive=("user-d",))
    aggregator, insights = RecordingAggregator(failing=("user-b",)), RecordingInsights()
    processor = AnalyticsProcessor(clock=clock, aggregator=aggregator, insights=insights)

    report = processor.process_active_users()

    assert report.kind == "regular"
    assert report.processed == 2
    assert report.errors == 1
    assert report.failed_user_ids == ["user-b"]
    assert not report.failed
    assert [user for user, _ in aggregator.calls] == ["user-a", "user-b", "user-c"]
    assert insights.users == ["user-a", "user-c"]
    assert [event.payload["user_id"] for event in events.named("user_analytics_failed")] == ["user-b"]
    sweep = events.named("analytics_sweep")[-1]
    assert sweep.payload["processed"] == 2
    assert sweep.payload["errors"] == 1
    assert sweep.payload["status"] == "completed"


@pytest.mark.parametrize(
    ("now", "expected"),
    [
        ("2026-10-19T02:15:00", [Granularity.DAILY, Granularity.WEEKLY]),
        ("2026-11-01T02:00:00", [Granularity.DAILY, Granularity.MONTHLY]),
        ("2026-10-19T03:00:00", [Granularity.DAILY]),
        ("2026-10-20T02:00:00", [Granularity.DAILY]),
    ],
)
def test_granularities_follow_the_processing_hour(make_clock, now: str, expected: List[Granularity]) -> None:
    processor = AnalyticsProcessor(clock=make_clock(_at(now)), aggregator=RecordingAggregator(), insights=RecordingInsights())
    assert processor.granularities_due("learner") == expected


def test_catch_up_recomputes_missed_windows(database, make_clock) -> None:
    clock = make_clock()
    _seed_users(clock.now(), active=("learner",))
    processor = AnalyticsProcessor(
        clock=clock,
        aggregator=RecordingAggregator(),
        insights=RecordingInsights(),
        catch_up_missed_windows=True,
    )
    assert processor.granularities_due("learner") == [Granularity.DAILY, Granularity.WEEKLY, Granularity.MONTHLY]

    with session_scope() as session:
        for granularity, computed_at in (
            (Granularity.WEEKLY, _at("2026-10-19T02:00:00")),
            (Granularity.MONTHLY, _at("2026-10-01T02:00:00")),
        ):
            learning_analytics.create_snapshot(
                session,
                LearningAnalyticsSnapshot(
                    user_id="learner",
                    granularity=granularity,
                    period_start=computed_at,
                    period_end=computed_at + timedelta(days=7),
                    computed_at=computed_at,
                ),
            )
    assert processor.granularities_due("learner") == [Granularity.DAILY]


def test_process_user_computes_due_granularities_then_insights(make_clock) -> None:
    aggregator, insights = RecordingAggregator(), RecordingInsights()
    processor = AnalyticsProcessor(clock=make_clock(_at("2026-10-19T02:30:00")), aggregator=aggregator, insights=insights)

    processor.process_user("learner")

    assert aggregator.calls == [("learner", Granularity.DAILY), ("learner", Granularity.WEEKLY)]
    assert insights.users == ["learner"]


def test_daily_sweep_covers_every_user_without_insights(database, make_clock) -> None:
    clock = make_clock()
    _seed_users(clock.now(), active=("user-a",), inactive=("user-b", "user-c"))
    aggregator, insights = RecordingAggregator(failing=("user-a",)), RecordingInsights()
    processor = AnalyticsProcessor(clock=clock, aggregator=aggregator, insights=insights)

    report = processor.run_daily_processing()

    assert report.kind == "daily"
    assert aggregator.calls == [
        ("user-a", Granularity.DAILY),
        ("user-b", Granularity.DAILY),
        ("user-c", Granularity.DAILY),
    ]
    assert report.processed == 2
    assert report.failed_user_ids == ["user-a"]
    assert insights.users == []


def test_sweep_level_failure_is_reported_and_retention_still_runs(database, make_clock, events) -> None:
    clock = make_clock()
    processor = AnalyticsProcessor(
        clock=clock,
        selector=BrokenSelector(),
        aggregator=RecordingAggregator(),
        insights=RecordingInsights(),
    )

    report = processor.process_active_users()

    assert report.failed
    assert report.processed == 0
    assert report.expired_recommendations == 0
    assert report.deleted_analytics == 0
    assert report.finished_at == clock.now()
    assert events.named("analytics_sweep")[-1].payload["status"] == "failed"


def test_retention_reports_counts_and_isolates_failures(database, make_clock, events) -> None:
    clock = make_clock()
    _seed_users(clock.now(), inactive=("learner",))
    with session_scope() as session:
        for age in (400, 365, 10):
            computed_at = clock.now() - timedelta(days=age)
            learning_analytics.create_snapshot(
                session,
                LearningAnalyticsSnapshot(
                    user_id="learner",
                    granularity=Granularity.DAILY,
                    period_start=computed_at,
                    period_end=computed_at + timedelta(days=1),
                    computed_at=computed_at,
                ),
            )

    processor = AnalyticsProcessor(clock=clock, aggregator=RecordingAggregator(), insights=RecordingInsights())
    assert processor.run_retention_cleanup() == (0, 2)

    broken = AnalyticsProcessor(
        clock=clock,
        aggregator=RecordingAggregator(),
        insights=RecordingInsights(),
        recommendation_repository=BrokenRecommendationRepository(),
        retention_days=5,
    )
    assert broken.run_retention_cleanup() == (None, 1)
    statuses = [(event.payload["action"], event.payload["status"]) for event in events.named("retention_cleanup")]
    assert statuses[-2:] == [("expire_recommendations", "failed"), ("delete_old_analytics", "completed")]


def test_parallel_workers_process_every_user(database, make_clock) -> None:
    clock = make_clock()
    ids = tuple(f"user-{index}" for index in range(6))
    _seed_users(clock.now(), active=ids)
    aggregator = RecordingAggregator(failing=("user-3",))
    processor = AnalyticsProcessor(clock=clock, aggregator=aggregator, insights=RecordingInsights(), max_workers=2)

    report = processor.process_active_users()

    assert report.processed == 5
    assert report.failed_user_ids == ["user-3"]
    assert sorted(user for user, _ in aggregator.calls) == list(ids)


@pytest.mark.parametrize("kwargs", [{"retention_days": 0}, {"max_workers": 0}])
def test_invalid_processor_settings_are_rejected(kwargs) -> None:
    with pytest.raises(ValueError):
        AnalyticsProcessor(aggregator=RecordingAggregator(), insights=RecordingInsights(), **kwargs)


def test_struggling_learner_end_to_end(database, make_clock) -> None:
    clock = make_clock()
    with session_scope() as session:
        session.add(UserModel(id="learner", email="learner@example.com", learning_profile={"ai_personality": "ARIA"}))
        session.flush()
        session.add(
            LearningSessionModel(
                user_id="learner",
                start_time=_at("2026-10-20T14:00:00"),
                duration_minutes=10,
                interaction_count=0,
                satisfaction_rating=1.5,
            )
        )
        session.add(
            UserProgressModel(
                user_id="learner",
                learning_path="python",
                completion_status="in_progress",
                created_at=_at("2026-10-20T13:00:00"),
                updated_at=_at("2026-10-20T13:00:00"),
            )
        )
        adaptation_rules.seed_defaults(session)

    processor = create_analytics_processor(get_settings(), clock=clock)
    first = processor.process_active_users()

    assert first.processed == 1
    assert first.errors == 0
    with session_scope() as session:
        recs = recommendations.list_for_user(session, "learner")
        profile = users.get_refs(session, ["learner"])[0].learning_profile
        low_completion = adaptation_rules.get_by_name(session, "Low Completion Rate Intervention")
        mismatch = adaptation_rules.get_by_name(session, "AI Personality Mismatch Detection")
        high_performer = adaptation_rules.get_by_name(session, "High Performer Content Boost")
    assert {rec.type for rec in recs} == {"schedule_optimization", "difficulty_adjustment", "ai_personality"}
    assert profile["ai_personality"] == "SAGE"
    assert low_completion is not None and low_completion.total_triggers == 1
    assert mismatch is not None and mismatch.total_triggers == 1
    assert high_performer is not None and high_performer.total_triggers == 0

    clock.advance(timedelta(hours=1))
    second = processor.process_active_users()

    assert second.processed == 1
    with session_scope() as session:
        assert len(recommendations.list_for_user(session, "learner")) == 3
        assert learning_analytics.count_for_user(session, "learner") == 2
        low_completion = adaptation_rules.get_by_name(session, "Low Completion Rate Intervention")
    assert low_completion is not None and low_completion.total_triggers == 1
