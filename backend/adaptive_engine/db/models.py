"""ORM models backing the analytics and adaptation engine."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin, UTCDateTime, utcnow

JSONType = JSON


def _uuid() -> str:
    return str(uuid.uuid4())


class UserModel(TimestampMixin, Base):
    __tablename__ = "users"
    __table_args__ = (Index("ix_users_email", "email", unique=True),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    learning_profile: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    sessions: Mapped[list["LearningSessionModel"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    progress_records: Mapped[list["UserProgressModel"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class LearningSessionModel(Base):
    __tablename__ = "learning_sessions"
    __table_args__ = (Index("ix_learning_sessions_start_time", "start_time"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    duration_minutes: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    interaction_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ai_interaction_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    satisfaction_rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="completed", nullable=False)

    user: Mapped[UserModel] = relationship(back_populates="sessions")


class UserProgressModel(Base):
    __tablename__ = "user_progress"
    __table_args__ = (Index("ix_user_progress_updated_at", "updated_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    learning_path: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    module_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    completion_status: Mapped[str] = mapped_column(String(32), default="in_progress", nullable=False)
    final_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    user: Mapped[UserModel] = relationship(back_populates="progress_records")


class LearningAnalyticsModel(Base):
    __tablename__ = "learning_analytics"
    __table_args__ = (
        Index("ix_learning_analytics_user_computed", "user_id", "computed_at"),
        Index("ix_learning_analytics_computed", "computed_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    granularity: Mapped[str] = mapped_column(String(16), nullable=False)
    period_start: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    period_end: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    computed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    engagement: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    progress: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    ai_interaction: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    version: Mapped[str] = mapped_column(String(16), default="1.0", nullable=False)


class RecommendationModel(TimestampMixin, Base):
    __tablename__ = "recommendations"
    __table_args__ = (
        Index("ix_recommendations_user_status", "user_id", "status"),
        Index("ix_recommendations_valid_until", "valid_until"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(64), default="General", nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    relevance_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    priority_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    overall_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    suggested_timing: Mapped[str] = mapped_column(String(16), default="this_week", nullable=False)
    generated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    valid_until: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    context: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    generated_by: Mapped[str] = mapped_column(String(32), default="rule_based", nullable=False)


class AdaptationRuleModel(TimestampMixin, Base):
    __tablename__ = "adaptation_rules"
    __table_args__ = (
        UniqueConstraint("name", name="uq_adaptation_rules_name"),
        Index("ix_adaptation_rules_active_priority", "is_active", "priority"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_global: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    target_user_ids: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    applicable_categories: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    trigger_conditions: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    adaptation_actions: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    cooldown_hours: Mapped[float] = mapped_column(Float, default=24.0, nullable=False)
    max_triggers_per_user: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    total_triggers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    successful_adaptations: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_triggered_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    triggers: Mapped[list["AdaptationRuleTriggerModel"]] = relationship(
        back_populates="rule", cascade="all, delete-orphan"
    )


class AdaptationRuleTriggerModel(Base):
    __tablename__ = "adaptation_rule_triggers"
    __table_args__ = (UniqueConstraint("rule_id", "user_id", name="uq_rule_trigger_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rule_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("adaptation_rules.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trigger_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    successful_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_triggered_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    rule: Mapped[AdaptationRuleModel] = relationship(back_populates="triggers")


class ProcessorAuditEventModel(Base):
    __tablename__ = "processor_audit_events"
    __table_args__ = (Index("ix_processor_audit_events_type", "event_type"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    actor: Mapped[str | None] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)


__all__ = [
    "AdaptationRuleModel",
    "AdaptationRuleTriggerModel",
    "LearningAnalyticsModel",
    "LearningSessionModel",
    "ProcessorAuditEventModel",
    "RecommendationModel",
    "UserModel",
    "UserProgressModel",
]
