"""Adaptation rule lookup, per-user trigger state and default rule seeding."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..adaptation_models import DEFAULT_ADAPTATION_RULES, AdaptationRule
from ..db.models import AdaptationRuleModel, AdaptationRuleTriggerModel


@dataclass(frozen=True)
class TriggerState:
    rule_id: str
    user_id: str
    trigger_count: int = 0
    last_triggered_at: Optional[datetime] = None


class AdaptationRuleRepository:
    def applicable_rules(self, session: Session, user_id: str, category: Optional[str] = None) -> List[AdaptationRule]:
        """Active rules that are global or target the user, filtered by category, highest priority first."""
        stmt = (
            select(AdaptationRuleModel)
            .where(AdaptationRuleModel.is_active.is_(True))
            .order_by(AdaptationRuleModel.priority.desc(), AdaptationRuleModel.name.asc())
        )
        rules: List[AdaptationRule] = []
        for model in session.execute(stmt).scalars():
            if not model.is_global and user_id not in (model.target_user_ids or []):
                continue
            categories = model.applicable_categories or []
            if category and categories and category not in categories:
                continue
            rules.append(self._to_domain(model))
        return rules

    def get_by_name(self, session: Session, name: str) -> Optional[AdaptationRule]:
        model = self._get_model_by_name(session, name)
        return self._to_domain(model) if model else None

    def upsert(self, session: Session, rule: AdaptationRule) -> AdaptationRule:
        model = self._get_model_by_name(session, rule.name)
        if model is None:
            model = AdaptationRuleModel(name=rule.name)
            session.add(model)
        self._apply_rule(model, rule)
        session.flush()
        return self._to_domain(model)

    def seed_defaults(self, session: Session, definitions: Iterable[Dict[str, Any]] = DEFAULT_ADAPTATION_RULES) -> int:
        """Upsert the default rule set by name without resetting trigger statistics."""
        count = 0
        for definition in definitions:
            rule = AdaptationRule.model_validate(definition)
            existing = self._get_model_by_name(session, rule.name)
            if existing is not None:
                rule = rule.model_copy(
                    update={
                        "total_triggers": existing.total_triggers,
                        "successful_adaptations": existing.successful_adaptations,
                        "last_triggered_at": existing.last_triggered_at,
                    }
                )
            self.upsert(session, rule)
            count += 1
        return count

    def trigger_state(self, session: Session, rule_id: str, user_id: str) -> TriggerState:
        record = self._get_trigger(session, rule_id, user_id)
        if record is None:
            return TriggerState(rule_id=rule_id, user_id=user_id)
        return TriggerState(
            rule_id=rule_id,
            user_id=user_id,
            trigger_count=record.trigger_count,
            last_triggered_at=record.last_triggered_at,
        )

    def record_trigger(
        self,
        session: Session,
        rule_id: str,
        user_id: str,
        now: datetime,
        *,
        successful: bool = True,
    ) -> TriggerState:
        """Count one firing of ``rule_id`` for ``user_id``.

        Counters are incremented in SQL so sweep workers handling different
        users against the same rule never lose an update.
        """
        success_increment = 1 if successful else 0
        updated = session.execute(
            update(AdaptationRuleModel)
            .where(AdaptationRuleModel.id == rule_id)
            .values(
                total_triggers=AdaptationRuleModel.total_triggers + 1,
                successful_adaptations=AdaptationRuleModel.successful_adaptations + success_increment,
                last_triggered_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount == 0:
            raise LookupError(f"Adaptation rule '{rule_id}' does not exist.")

        updated = session.execute(
            update(AdaptationRuleTriggerModel)
            .where(
                AdaptationRuleTriggerModel.rule_id == rule_id,
                AdaptationRuleTriggerModel.user_id == user_id,
            )
            .values(
                trigger_count=AdaptationRuleTriggerModel.trigger_count + 1,
                successful_count=AdaptationRuleTriggerModel.successful_count + success_increment,
                last_triggered_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount == 0:
            session.add(
                AdaptationRuleTriggerModel(
                    rule_id=rule_id,
                    user_id=user_id,
                    trigger_count=1,
                    successful_count=success_increment,
                    last_triggered_at=now,
                )
            )
        session.flush()

        record = session.execute(
            self._trigger_query(rule_id, user_id).execution_options(populate_existing=True)
        ).scalar_one()
        return TriggerState(
            rule_id=rule_id,
            user_id=user_id,
            trigger_count=record.trigger_count,
            last_triggered_at=record.last_triggered_at,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_model_by_name(self, session: Session, name: str) -> Optional[AdaptationRuleModel]:
        stmt = select(AdaptationRuleModel).where(AdaptationRuleModel.name == name.strip())
        return session.execute(stmt).scalar_one_or_none()

    def _trigger_query(self, rule_id: str, user_id: str):
        return select(AdaptationRuleTriggerModel).where(
            AdaptationRuleTriggerModel.rule_id == rule_id,
            AdaptationRuleTriggerModel.user_id == user_id,
        )

    def _get_trigger(self, session: Session, rule_id: str, user_id: str) -> Optional[AdaptationRuleTriggerModel]:
        return session.execute(self._trigger_query(rule_id, user_id)).scalar_one_or_none()

    def _apply_rule(self, model: AdaptationRuleModel, rule: AdaptationRule) -> None:
        model.description = rule.description
        model.category = rule.category
        model.is_active = rule.is_active
        model.is_global = rule.is_global
        model.target_user_ids = list(rule.target_user_ids)
        model.applicable_categories = list(rule.applicable_categories)
        model.trigger_conditions = rule.trigger_conditions.model_dump(mode="json", exclude_none=True)
        model.adaptation_actions = rule.adaptation_actions.model_dump(mode="json", exclude_none=True)
        model.priority = rule.priority
        model.cooldown_hours = rule.cooldown_hours
        model.max_triggers_per_user = rule.max_triggers_per_user
        model.total_triggers = rule.total_triggers
        model.successful_adaptations = rule.successful_adaptations
        model.last_triggered_at = rule.last_triggered_at

    def _to_domain(self, model: AdaptationRuleModel) -> AdaptationRule:
        return AdaptationRule.model_validate(
            {
                "id": model.id,
                "name": model.name,
                "description": model.description or "",
                "category": model.category,
                "is_active": model.is_active,
                "is_global": model.is_global,
                "target_user_ids": model.target_user_ids or [],
                "applicable_categories": model.applicable_categories or [],
                "trigger_conditions": model.trigger_conditions or {},
                "adaptation_actions": model.adaptation_actions or {},
                "priority": model.priority,
                "cooldown_hours": model.cooldown_hours,
                "max_triggers_per_user": model.max_triggers_per_user,
                "total_triggers": model.total_triggers,
                "successful_adaptations": model.successful_adaptations,
                "last_triggered_at": model.last_triggered_at,
            }
        )


adaptation_rules = AdaptationRuleRepository()

__all__ = ["AdaptationRuleRepository", "TriggerState", "adaptation_rules"]
