from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from adaptive_engine.config import get_settings
from adaptive_engine.db.session import session_scope
from adaptive_engine.main import app
from adaptive_engine.repositories import adaptation_rules


@pytest.fixture
def quiet_startup(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ADAPTIVE_RUN_ON_STARTUP", "false")
    get_settings.cache_clear()


def test_health_endpoint() -> None:
    client = TestClient(app)
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "mode": "analytics-processor"}


def test_database_health_endpoint_success(database) -> None:
    client = TestClient(app)
    response = client.get("/healthz/database")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["dialect"] == "sqlite"
    assert "pool" in payload


def test_database_health_endpoint_failure(monkeypatch) -> None:
    client = TestClient(app)

    def raise_runtime_error():
        raise RuntimeError("missing database url")

    monkeypatch.setattr("adaptive_engine.main.get_engine", raise_runtime_error)
    response = client.get("/healthz/database")
    assert response.status_code == 503
    assert response.json()["detail"] == "missing database url"


def test_status_requires_running_application() -> None:
    client = TestClient(app)
    response = client.get("/api/analytics/processor/status")
    assert response.status_code == 503


def test_lifespan_seeds_rules_and_runs_scheduler(database, quiet_startup) -> None:
    with TestClient(app) as client:
        response = client.get("/api/analytics/processor/status")
        assert response.status_code == 200
        payload = response.json()
        assert payload["running"] is True
        assert payload["short_interval_ms"] == 60 * 60 * 1000
        assert payload["daily_hour"] == 2
        assert payload["next_short_sweep_at"] is not None

        scheduler = app.state.analytics_scheduler

    assert not scheduler.running
    with session_scope() as session:
        assert len(adaptation_rules.applicable_rules(session, "anyone")) == 5


def test_manual_run_is_hidden_unless_debug_endpoints_enabled(database, quiet_startup) -> None:
    with TestClient(app) as client:
        response = client.post("/api/analytics/processor/run")
    assert response.status_code == 404


def test_manual_run_returns_sweep_report(database, quiet_startup, monkeypatch) -> None:
    monkeypatch.setenv("ADAPTIVE_DEBUG_ENDPOINTS", "true")
    get_settings.cache_clear()

    with TestClient(app) as client:
        regular = client.post("/api/analytics/processor/run")
        daily = client.post("/api/analytics/processor/run", params={"daily": "true"})

    assert regular.status_code == 200
    assert regular.json()["kind"] == "regular"
    assert regular.json()["processed"] == 0
    assert daily.status_code == 200
    assert daily.json()["kind"] == "daily"
