"""Processor audit trail written from telemetry."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import ProcessorAuditEventModel


class AuditEventRepository:
    def record(
        self,
        session: Session,
        event_type: str,
        payload: Dict[str, Any],
        *,
        user_id: Optional[str] = None,
        actor: Optional[str] = "analytics_processor",
    ) -> ProcessorAuditEventModel:
        record = ProcessorAuditEventModel(
            user_id=user_id,
            event_type=event_type,
            payload=dict(payload),
            actor=actor,
        )
        session.add(record)
        session.flush()
        return record

    def recent(
        self,
        session: Session,
        *,
        event_type: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[ProcessorAuditEventModel]:
        stmt = select(ProcessorAuditEventModel)
        if event_type is not None:
            stmt = stmt.where(ProcessorAuditEventModel.event_type == event_type)
        if user_id is not None:
            stmt = stmt.where(ProcessorAuditEventModel.user_id == user_id)
        stmt = stmt.order_by(ProcessorAuditEventModel.created_at.desc()).limit(limit)
        return list(session.execute(stmt).scalars())


audit_events = AuditEventRepository()

__all__ = ["AuditEventRepository", "audit_events"]
