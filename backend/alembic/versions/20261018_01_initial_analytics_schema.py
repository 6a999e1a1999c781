"""Initial schema for analytics snapshots, recommendations and adaptation rules."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261018_01_initial_analytics_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("learning_profile", sa.JSON(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "learning_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Float(), nullable=False, server_default="0"),
        sa.Column("interaction_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ai_interaction_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("satisfaction_rating", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="completed"),
    )
    op.create_index("ix_learning_sessions_user_id", "learning_sessions", ["user_id"])
    op.create_index("ix_learning_sessions_start_time", "learning_sessions", ["start_time"])

    op.create_table(
        "user_progress",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("learning_path", sa.String(length=128), nullable=True),
        sa.Column("module_id", sa.String(length=128), nullable=True),
        sa.Column("completion_status", sa.String(length=32), nullable=False, server_default="in_progress"),
        sa.Column("final_score", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_user_progress_user_id", "user_progress", ["user_id"])
    op.create_index("ix_user_progress_updated_at", "user_progress", ["updated_at"])

    op.create_table(
        "learning_analytics",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("granularity", sa.String(length=16), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("engagement", sa.JSON(), nullable=False),
        sa.Column("progress", sa.JSON(), nullable=False),
        sa.Column("ai_interaction", sa.JSON(), nullable=False),
        sa.Column("version", sa.String(length=16), nullable=False, server_default="1.0"),
    )
    op.create_index("ix_learning_analytics_user_computed", "learning_analytics", ["user_id", "computed_at"])
    op.create_index("ix_learning_analytics_computed", "learning_analytics", ["computed_at"])

    op.create_table(
        "recommendations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False, server_default="General"),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("relevance_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("confidence_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("priority_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("overall_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("suggested_timing", sa.String(length=16), nullable=False, server_default="this_week"),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("context", sa.JSON(), nullable=False),
        sa.Column("generated_by", sa.String(length=32), nullable=False, server_default="rule_based"),
    )
    op.create_index("ix_recommendations_user_status", "recommendations", ["user_id", "status"])
    op.create_index("ix_recommendations_valid_until", "recommendations", ["valid_until"])

    op.create_table(
        "adaptation_rules",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_global", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("target_user_ids", sa.JSON(), nullable=False),
        sa.Column("applicable_categories", sa.JSON(), nullable=False),
        sa.Column("trigger_conditions", sa.JSON(), nullable=False),
        sa.Column("adaptation_actions", sa.JSON(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("cooldown_hours", sa.Float(), nullable=False, server_default="24"),
        sa.Column("max_triggers_per_user", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("total_triggers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful_adaptations", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_triggered_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("name", name="uq_adaptation_rules_name"),
    )
    op.create_index("ix_adaptation_rules_active_priority", "adaptation_rules", ["is_active", "priority"])

    op.create_table(
        "adaptation_rule_triggers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("rule_id", sa.String(length=36), sa.ForeignKey("adaptation_rules.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("trigger_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_triggered_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("rule_id", "user_id", name="uq_rule_trigger_user"),
    )
    op.create_index("ix_adaptation_rule_triggers_user_id", "adaptation_rule_triggers", ["user_id"])

    op.create_table(
        "processor_audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("actor", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_processor_audit_events_type", "processor_audit_events", ["event_type"])


def downgrade() -> None:
    op.drop_index("ix_processor_audit_events_type", table_name="processor_audit_events")
    op.drop_table("processor_audit_events")
    op.drop_index("ix_adaptation_rule_triggers_user_id", table_name="adaptation_rule_triggers")
    op.drop_table("adaptation_rule_triggers")
    op.drop_index("ix_adaptation_rules_active_priority", table_name="adaptation_rules")
    op.drop_table("adaptation_rules")
    op.drop_index("ix_recommendations_valid_until", table_name="recommendations")
    op.drop_index("ix_recommendations_user_status", table_name="recommendations")
    op.drop_table("recommendations")
    op.drop_index("ix_learning_analytics_computed", table_name="learning_analytics")
    op.drop_index("ix_learning_analytics_user_computed", table_name="learning_analytics")
    op.drop_table("learning_analytics")
    op.drop_index("ix_user_progress_updated_at", table_name="user_progress")
    op.drop_index("ix_user_progress_user_id", table_name="user_progress")
    op.drop_table("user_progress")
    op.drop_index("ix_learning_sessions_start_time", table_name="learning_sessions")
    op.drop_index("ix_learning_sessions_user_id", table_name="learning_sessions")
    op.drop_table("learning_sessions")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
