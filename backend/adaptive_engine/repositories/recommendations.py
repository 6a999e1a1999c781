"""Recommendation persistence: active counts, inserts and expiry."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Set

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..analytics_models import ACTIVE_RECOMMENDATION_STATUSES, Recommendation
from ..db.models import RecommendationModel


class RecommendationRepository:
    def _active_clause(self, user_id: str, now: datetime):
        return (
            RecommendationModel.user_id == user_id,
            RecommendationModel.status.in_(ACTIVE_RECOMMENDATION_STATUSES),
            RecommendationModel.valid_until > now,
        )

    def count_active(self, session: Session, user_id: str, now: datetime) -> int:
        stmt = select(func.count(RecommendationModel.id)).where(*self._active_clause(user_id, now))
        return int(session.execute(stmt).scalar_one())

    def active_types(self, session: Session, user_id: str, now: datetime) -> Set[str]:
        stmt = select(RecommendationModel.type).where(*self._active_clause(user_id, now)).distinct()
        return set(session.execute(stmt).scalars())

    def list_for_user(self, session: Session, user_id: str) -> List[Recommendation]:
        stmt = (
            select(RecommendationModel)
            .where(RecommendationModel.user_id == user_id)
            .order_by(RecommendationModel.overall_score.desc(), RecommendationModel.generated_at.desc())
        )
        return [self._to_domain(model) for model in session.execute(stmt).scalars()]

    def create_many(self, session: Session, recommendations: Iterable[Recommendation]) -> List[Recommendation]:
        models = [
            RecommendationModel(
                user_id=rec.user_id,
                type=rec.type,
                category=rec.category,
                title=rec.title,
                description=rec.description,
                relevance_score=rec.relevance_score,
                confidence_score=rec.confidence_score,
                priority_score=rec.priority_score,
                overall_score=rec.overall_score,
                status=rec.status,
                suggested_timing=rec.suggested_timing,
                generated_at=rec.generated_at,
                valid_until=rec.valid_until,
                context=dict(rec.context),
            )
            for rec in recommendations
        ]
        session.add_all(models)
        session.flush()
        return [self._to_domain(model) for model in models]

    def expire_stale(self, session: Session, now: datetime) -> int:
        """Mark pending/viewed recommendations past their validity window as expired."""
        result = session.execute(
            update(RecommendationModel)
            .where(
                RecommendationModel.valid_until < now,
                RecommendationModel.status.in_(ACTIVE_RECOMMENDATION_STATUSES),
            )
            .values(status="expired")
        )
        return int(result.rowcount or 0)

    def _to_domain(self, model: RecommendationModel) -> Recommendation:
        return Recommendation(
            id=model.id,
            user_id=model.user_id,
            type=model.type,
            category=model.category,
            title=model.title,
            description=model.description,
            relevance_score=model.relevance_score,
            confidence_score=model.confidence_score,
            priority_score=model.priority_score,
            overall_score=model.overall_score,
            status=model.status,  # type: ignore[arg-type]
            suggested_timing=model.suggested_timing,  # type: ignore[arg-type]
            generated_at=model.generated_at,
            valid_until=model.valid_until,
            context=dict(model.context or {}),
        )


recommendations = RecommendationRepository()

__all__ = ["RecommendationRepository", "recommendations"]
