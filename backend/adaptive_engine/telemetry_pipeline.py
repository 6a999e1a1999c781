"""Telemetry listener that persists sweep, rule and retention events to the audit table."""

from __future__ import annotations

import logging
from typing import Set

from .db.session import session_scope
from .repositories.audit_events import audit_events
from .telemetry import TelemetryEvent, register_listener

logger = logging.getLogger(__name__)

_MONITORED_EVENTS: Set[str] = {
    "analytics_sweep",
    "adaptation_rule_triggered",
    "retention_cleanup",
}


def _persist_event(event: TelemetryEvent) -> None:
    if event.name not in _MONITORED_EVENTS:
        return
    user_id = event.payload.get("user_id")
    if not isinstance(user_id, str) or not user_id.strip():
        user_id = None
    try:
        with session_scope() as session:
            audit_events.record(session, event.name, event.payload, user_id=user_id)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to persist telemetry event %s", event.name)


def install() -> None:
    register_listener(_persist_event)


install()

__all__ = ["_MONITORED_EVENTS", "install"]
