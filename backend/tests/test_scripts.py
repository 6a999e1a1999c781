from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone

from adaptive_engine.db.models import LearningSessionModel, UserModel
from adaptive_engine.db.session import session_scope
from adaptive_engine.logging_config import configure_logging
from adaptive_engine.repositories import adaptation_rules, learning_analytics
from scripts import run_sweep, seed_rules


def test_configure_logging_quiets_libraries_unless_flagged(monkeypatch) -> None:
    monkeypatch.setenv("ADAPTIVE_DEBUG_SQL", "1")
    monkeypatch.delenv("ADAPTIVE_DEBUG_SCHEDULER", raising=False)

    configure_logging("debug")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("apscheduler").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.DEBUG
    configure_logging("warning")
    monkeypatch.delenv("ADAPTIVE_DEBUG_SQL")
    configure_logging("info")
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_seed_rules_script(database) -> None:
    assert seed_rules.main() == 0
    with session_scope() as session:
        assert adaptation_rules.get_by_name(session, "Struggling Learner Support") is not None


def test_run_sweep_script_prints_daily_report(database, capsys) -> None:
    with session_scope() as session:
        session.add(UserModel(id="learner", email="learner@example.com"))
        session.flush()
        session.add(
            LearningSessionModel(
                user_id="learner",
                start_time=datetime.now(timezone.utc) - timedelta(days=3),
                duration_minutes=25,
            )
        )

    assert run_sweep.main(["--daily", "--log-level", "warning"]) == 0

    report = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert report["kind"] == "daily"
    assert report["processed"] == 1
    assert report["errors"] == 0
    with session_scope() as session:
        assert learning_analytics.count_for_user(session, "learner") == 1
