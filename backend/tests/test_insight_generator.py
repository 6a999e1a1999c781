from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List

import pytest

from adaptive_engine.analytics_models import Granularity, LearningAnalyticsSnapshot, Recommendation
from adaptive_engine.db.models import UserModel
from adaptive_engine.db.session import session_scope
from adaptive_engine.insight_generator import InsightGenerator
from adaptive_engine.repositories import learning_analytics, recommendations


class RecordingGenerator:
    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    def generate_recommendations(self, user_id: str, **kwargs: Any) -> list:
        self.calls.append({"user_id": user_id, **kwargs})
        return []


class RecordingRuleEngine:
    def __init__(self) -> None:
        self.users: List[str] = []

    def evaluate_user(self, user_id: str) -> List[str]:
        self.users.append(user_id)
        return []


def _seed(now, *, active: int, inactive: int = 0, with_analytics: bool = True) -> None:
    with session_scope() as session:
        session.add(UserModel(id="learner", email="learner@example.com"))
        session.flush()
        recs = [
            Recommendation(
                user_id="learner",
                type=f"type-{index}",
                title=f"active {index}",
                description="desc",
                status="viewed" if index % 2 else "pending",
                valid_until=now + timedelta(days=3),
            )
            for index in range(active)
        ]
        recs += [
            Recommendation(
                user_id="learner",
                type="stale",
                title=f"inactive {index}",
                description="desc",
                status="dismissed" if index % 2 else "pending",
                valid_until=now + timedelta(days=3) if index % 2 else now - timedelta(minutes=1),
            )
            for index in range(inactive)
        ]
        recommendations.create_many(session, recs)
        if with_analytics:
            learning_analytics.create_snapshot(
                session,
                LearningAnalyticsSnapshot(
                    user_id="learner",
                    granularity=Granularity.DAILY,
                    period_start=now - timedelta(hours=15),
                    period_end=now + timedelta(hours=9),
                    computed_at=now,
                ),
            )


def _insights(clock, generator, engine) -> InsightGenerator:
    return InsightGenerator(clock=clock, recommendation_generator=generator, rule_engine=engine)


@pytest.mark.parametrize(
    ("active", "expected"),
    [(0, 5), (2, 3)],
)
def test_tops_up_to_target_when_below_threshold(database, make_clock, active: int, expected: int) -> None:
    clock = make_clock()
    _seed(clock.now(), active=active, inactive=2)
    generator, engine = RecordingGenerator(), RecordingRuleEngine()

    requested = _insights(clock, generator, engine).generate_insights("learner")

    assert requested == expected
    assert len(generator.calls) == 1
    assert generator.calls[0]["max_count"] == expected
    assert generator.calls[0]["context"].user_id == "learner"
    assert engine.users == ["learner"]


@pytest.mark.parametrize("active", [3, 4, 5, 7])
def test_no_generation_at_or_above_threshold(database, make_clock, active: int) -> None:
    clock = make_clock()
    _seed(clock.now(), active=active)
    generator, engine = RecordingGenerator(), RecordingRuleEngine()

    assert _insights(clock, generator, engine).generate_insights("learner") == 0
    assert generator.calls == []
    assert engine.users == ["learner"]


def test_cap_requests_one_for_four_active_with_low_threshold(database, make_clock) -> None:
    clock = make_clock()
    _seed(clock.now(), active=4)
    generator, engine = RecordingGenerator(), RecordingRuleEngine()
    insights = InsightGenerator(
        clock=clock,
        recommendation_generator=generator,
        rule_engine=engine,
        refill_threshold=5,
        target_count=5,
    )

    assert insights.generate_insights("learner") == 1
    assert generator.calls[0]["max_count"] == 1


def test_missing_analytics_skips_generation_but_runs_rules(database, make_clock) -> None:
    clock = make_clock()
    _seed(clock.now(), active=0, with_analytics=False)
    generator, engine = RecordingGenerator(), RecordingRuleEngine()

    assert _insights(clock, generator, engine).generate_insights("learner") == 0
    assert generator.calls == []
    assert engine.users == ["learner"]
