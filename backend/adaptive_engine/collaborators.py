"""Outbound collaborators the adaptation dispatcher hands work to.

Check-ins and pace changes go to a scheduling service. Notifications and content
adjustments go to their own services. The defaults here publish a telemetry event and log the request
so a downstream consumer can pick it up; deployments swap in real clients.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Protocol

from .telemetry import emit_event

logger = logging.getLogger(__name__)


class NotificationClient(Protocol):
    def send_intervention(self, user_id: str, *, rule_name: str, reason: str) -> None:  # pragma: no cover
        ...


class SchedulingClient(Protocol):
    def schedule_checkin(self, user_id: str, *, rule_name: str) -> None:  # pragma: no cover
        ...

    def request_pace_adaptation(self, user_id: str, adjustments: Dict[str, Any], *, rule_name: str) -> None:  # pragma: no cover
        ...


class ContentDeliveryClient(Protocol):
    def request_content_adaptation(self, user_id: str, adjustments: Dict[str, Any], *, rule_name: str) -> None:  # pragma: no cover
        ...


class TelemetryNotificationClient:
    def send_intervention(self, user_id: str, *, rule_name: str, reason: str) -> None:
        logger.info("Intervention notification queued for user %s (rule=%s)", user_id, rule_name)
        emit_event("intervention_notification", user_id=user_id, rule=rule_name, reason=reason)


class TelemetrySchedulingClient:
    def schedule_checkin(self, user_id: str, *, rule_name: str) -> None:
        logger.info("Check-in requested for user %s (rule=%s)", user_id, rule_name)
        emit_event("checkin_scheduled", user_id=user_id, rule=rule_name)

    def request_pace_adaptation(self, user_id: str, adjustments: Dict[str, Any], *, rule_name: str) -> None:
        logger.info("Pace adaptation requested for user %s: %s", user_id, adjustments)
        emit_event("pace_adaptation_requested", user_id=user_id, rule=rule_name, adjustments=adjustments)


class TelemetryContentDeliveryClient:
    def request_content_adaptation(self, user_id: str, adjustments: Dict[str, Any], *, rule_name: str) -> None:
        logger.info("Content adaptation requested for user %s: %s", user_id, adjustments)
        emit_event("content_adaptation_requested", user_id=user_id, rule=rule_name, adjustments=adjustments)


__all__ = [
    "ContentDeliveryClient",
    "NotificationClient",
    "SchedulingClient",
    "TelemetryContentDeliveryClient",
    "TelemetryNotificationClient",
    "TelemetrySchedulingClient",
]
