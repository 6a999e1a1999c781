"""Read-mostly access to users and their activity records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..analytics_models import UserRef
from ..db.models import LearningSessionModel, UserModel, UserProgressModel


class UserRepository:
    def active_user_ids(self, session: Session, since: datetime) -> Set[str]:
        """Distinct ids with a session started or progress updated at/after ``since``."""
        session_ids = session.execute(
            select(LearningSessionModel.user_id).where(LearningSessionModel.start_time >= since).distinct()
        ).scalars()
        progress_ids = session.execute(
            select(UserProgressModel.user_id).where(UserProgressModel.updated_at >= since).distinct()
        ).scalars()
        return set(session_ids) | set(progress_ids)

    def get_refs(self, session: Session, user_ids: Iterable[str]) -> List[UserRef]:
        ids = list(user_ids)
        if not ids:
            return []
        stmt = (
            select(UserModel.id, UserModel.email, UserModel.learning_profile)
            .where(UserModel.id.in_(ids))
            .order_by(UserModel.id.asc())
        )
        return [
            UserRef(id=row.id, email=row.email, learning_profile=dict(row.learning_profile or {}))
            for row in session.execute(stmt)
        ]

    def all_user_ids(self, session: Session) -> List[str]:
        return list(session.execute(select(UserModel.id).order_by(UserModel.id.asc())).scalars())

    def exists(self, session: Session, user_id: str) -> bool:
        return session.get(UserModel, user_id) is not None

    def sessions_between(self, session: Session, user_id: str, start: datetime, end: datetime) -> List[LearningSessionModel]:
        stmt = (
            select(LearningSessionModel)
            .where(
                LearningSessionModel.user_id == user_id,
                LearningSessionModel.start_time >= start,
                LearningSessionModel.start_time < end,
            )
            .order_by(LearningSessionModel.start_time.asc())
        )
        return list(session.execute(stmt).scalars())

    def progress_between(self, session: Session, user_id: str, start: datetime, end: datetime) -> List[UserProgressModel]:
        stmt = select(UserProgressModel).where(
            UserProgressModel.user_id == user_id,
            UserProgressModel.created_at >= start,
            UserProgressModel.created_at < end,
        )
        return list(session.execute(stmt).scalars())

    def update_learning_profile_field(self, session: Session, user_id: str, field: str, value: Any) -> UserRef:
        model = session.get(UserModel, user_id)
        if model is None:
            raise LookupError(f"User '{user_id}' does not exist.")
        # Reassign so the JSON column is flagged dirty.
        profile = dict(model.learning_profile or {})
        profile[field] = value
        model.learning_profile = profile
        session.flush()
        return UserRef(id=model.id, email=model.email, learning_profile=profile)


users = UserRepository()

__all__ = ["UserRepository", "users"]
