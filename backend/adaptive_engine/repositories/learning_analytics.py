"""Append-only storage for learning analytics snapshots."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..analytics_models import (
    AIInteractionMetrics,
    EngagementMetrics,
    Granularity,
    LearningAnalyticsSnapshot,
    ProgressMetrics,
)
from ..db.models import LearningAnalyticsModel


class LearningAnalyticsRepository:
    """Snapshots are only ever inserted; retention is the single deletion path."""

    def create_snapshot(self, session: Session, snapshot: LearningAnalyticsSnapshot) -> LearningAnalyticsSnapshot:
        model = LearningAnalyticsModel(
            user_id=snapshot.user_id,
            granularity=snapshot.granularity.value,
            period_start=snapshot.period_start,
            period_end=snapshot.period_end,
            computed_at=snapshot.computed_at,
            engagement=snapshot.engagement.model_dump(mode="json"),
            progress=snapshot.progress.model_dump(mode="json"),
            ai_interaction=snapshot.ai_interaction.model_dump(mode="json"),
        )
        session.add(model)
        session.flush()
        return self._to_domain(model)

    def latest(
        self,
        session: Session,
        user_id: str,
        granularity: Optional[Granularity] = None,
    ) -> Optional[LearningAnalyticsSnapshot]:
        stmt = select(LearningAnalyticsModel).where(LearningAnalyticsModel.user_id == user_id)
        if granularity is not None:
            stmt = stmt.where(LearningAnalyticsModel.granularity == granularity.value)
        stmt = stmt.order_by(LearningAnalyticsModel.computed_at.desc(), LearningAnalyticsModel.id.desc()).limit(1)
        model = session.execute(stmt).scalar_one_or_none()
        if model is None:
            return None
        return self._to_domain(model)

    def latest_computed_at(self, session: Session, user_id: str, granularity: Granularity) -> Optional[datetime]:
        snapshot = self.latest(session, user_id, granularity)
        return snapshot.computed_at if snapshot else None

    def count_for_user(self, session: Session, user_id: str) -> int:
        stmt = select(LearningAnalyticsModel.id).where(LearningAnalyticsModel.user_id == user_id)
        return len(session.execute(stmt).scalars().all())

    def delete_older_than(self, session: Session, cutoff: datetime) -> int:
        """Delete snapshots computed at or before ``cutoff``; returns the number removed."""
        result = session.execute(
            delete(LearningAnalyticsModel).where(LearningAnalyticsModel.computed_at <= cutoff)
        )
        return int(result.rowcount or 0)

    def _to_domain(self, model: LearningAnalyticsModel) -> LearningAnalyticsSnapshot:
        return LearningAnalyticsSnapshot(
            id=model.id,
            user_id=model.user_id,
            granularity=Granularity(model.granularity),
            period_start=model.period_start,
            period_end=model.period_end,
            computed_at=model.computed_at,
            engagement=EngagementMetrics.model_validate(model.engagement or {}),
            progress=ProgressMetrics.model_validate(model.progress or {}),
            ai_interaction=AIInteractionMetrics.model_validate(model.ai_interaction or {}),
        )


learning_analytics = LearningAnalyticsRepository()

__all__ = ["LearningAnalyticsRepository", "learning_analytics"]
