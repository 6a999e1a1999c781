from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from adaptive_engine.analytics_aggregator import (
    AnalyticsAggregator,
    consistency_score,
    engagement_metrics,
    period_boundaries,
    progress_metrics,
)
from adaptive_engine.analytics_models import Granularity
from adaptive_engine.db.models import LearningSessionModel, UserModel, UserProgressModel
from adaptive_engine.db.session import session_scope
from adaptive_engine.repositories import learning_analytics


def _at(text: str) -> datetime:
    return datetime.fromisoformat(text).replace(tzinfo=timezone.utc)


def test_period_boundaries() -> None:
    now = _at("2026-10-20T15:30:00")  # Tuesday
    assert period_boundaries(Granularity.DAILY, now) == (_at("2026-10-20T00:00:00"), _at("2026-10-21T00:00:00"))
    assert period_boundaries(Granularity.WEEKLY, now) == (_at("2026-10-18T00:00:00"), _at("2026-10-25T00:00:00"))
    assert period_boundaries(Granularity.MONTHLY, now) == (_at("2026-10-01T00:00:00"), _at("2026-11-01T00:00:00"))
    december = _at("2026-12-31T23:00:00")
    assert period_boundaries(Granularity.MONTHLY, december) == (_at("2026-12-01T00:00:00"), _at("2027-01-01T00:00:00"))
    sunday = _at("2026-10-18T08:00:00")
    assert period_boundaries(Granularity.WEEKLY, sunday)[0] == _at("2026-10-18T00:00:00")


def test_consistency_score_penalises_uneven_days() -> None:
    day = _at("2026-10-20T09:00:00")
    assert consistency_score([day]) == 100.0
    assert consistency_score([day, day + timedelta(days=1)]) == 100.0
    uneven = [day, day + timedelta(hours=1), day + timedelta(hours=2), day + timedelta(days=1)]
    assert consistency_score(uneven) < 100.0


def test_engagement_and_progress_metrics() -> None:
    start = _at("2026-10-20T09:00:00")
    sessions = [
        LearningSessionModel(user_id="u", start_time=start, duration_minutes=30, interaction_count=60),
        LearningSessionModel(user_id="u", start_time=start + timedelta(days=1), duration_minutes=60, interaction_count=60),
    ]
    engagement = engagement_metrics(sessions)
    assert engagement.session_count == 2
    assert engagement.total_session_time == 90
    assert engagement.average_session_duration == 45
    assert engagement.interaction_rate == pytest.approx(1.33)
    assert 0 < engagement.focus_score <= 100

    records = [
        UserProgressModel(user_id="u", learning_path="python", completion_status="completed", final_score=80),
        UserProgressModel(user_id="u", learning_path="python", completion_status="in_progress", final_score=None),
        UserProgressModel(user_id="u", learning_path="sql", completion_status="completed", final_score=90),
        UserProgressModel(user_id="u", learning_path="sql", completion_status="in_progress", final_score=0),
    ]
    progress = progress_metrics(records)
    assert progress.modules_started == 4
    assert progress.modules_completed == 2
    assert progress.paths_enrolled == 2
    assert progress.completion_rate == 50.0
    assert progress.average_module_score == 85


def test_empty_period_produces_zeroed_metrics() -> None:
    engagement = engagement_metrics([])
    assert engagement.session_count == 0
    assert engagement.focus_score == 0.0
    assert progress_metrics([]).completion_rate == 0.0


def test_compute_user_analytics_persists_snapshot(database, make_clock) -> None:
    clock = make_clock(_at("2026-10-20T15:00:00"))
    with session_scope() as session:
        session.add(UserModel(id="learner", email="learner@example.com"))
        session.flush()
        session.add_all(
            [
                LearningSessionModel(
                    user_id="learner",
                    start_time=_at("2026-10-20T09:00:00"),
                    duration_minutes=20,
                    interaction_count=10,
                    ai_interaction_count=4,
                    satisfaction_rating=4.0,
                ),
                LearningSessionModel(
                    user_id="learner",
                    start_time=_at("2026-10-20T13:00:00"),
                    duration_minutes=40,
                    interaction_count=20,
                    ai_interaction_count=6,
                    satisfaction_rating=3.0,
                ),
                # Yesterday: outside the daily period.
                LearningSessionModel(user_id="learner", start_time=_at("2026-10-19T13:00:00"), duration_minutes=90),
            ]
        )
        session.add(
            UserProgressModel(
                user_id="learner",
                learning_path="python",
                completion_status="completed",
                final_score=70,
                created_at=_at("2026-10-20T10:00:00"),
                updated_at=_at("2026-10-20T10:00:00"),
            )
        )

    snapshot = AnalyticsAggregator(clock=clock).compute_user_analytics("learner", Granularity.DAILY)

    assert snapshot.id is not None
    assert snapshot.computed_at == clock.now()
    assert snapshot.period_start == _at("2026-10-20T00:00:00")
    assert snapshot.engagement.session_count == 2
    assert snapshot.engagement.total_session_time == 60
    assert snapshot.ai_interaction.total_interactions == 10
    assert snapshot.ai_interaction.satisfaction_score == 3.5
    assert snapshot.progress.completion_rate == 100.0

    with session_scope() as session:
        stored = learning_analytics.latest(session, "learner", Granularity.DAILY)
    assert stored is not None and stored.id == snapshot.id


def test_satisfaction_is_none_without_ratings(database, make_clock) -> None:
    clock = make_clock()
    with session_scope() as session:
        session.add(UserModel(id="quiet", email="quiet@example.com"))
        session.flush()
        session.add(LearningSessionModel(user_id="quiet", start_time=clock.now() - timedelta(hours=1), duration_minutes=15))

    snapshot = AnalyticsAggregator(clock=clock).compute_user_analytics("quiet", Granularity.DAILY)
    assert snapshot.ai_interaction.satisfaction_score is None


def test_unknown_user_raises_lookup_error(database, make_clock) -> None:
    with pytest.raises(LookupError):
        AnalyticsAggregator(clock=make_clock()).compute_user_analytics("ghost", Granularity.DAILY)
