"""Repositories for rule definitions and execution history."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from crm_rules.db.models import BusinessRule as BusinessRuleRecord
from crm_rules.db.models import RuleExecution
from .changes import rule_applies
from .models import (
    BusinessRule,
    BusinessRuleInput,
    BusinessRuleUpdate,
    ProcessingContext,
    RuleStatus,
)
from .validation import RuleValidationError, validate_for_storage


def _utcnow() -> datetime:
    """Get current UTC time as naive datetime for database compatibility."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _dump(items) -> List[Dict[str, Any]]:
    return [item.model_dump(mode="json", exclude_none=True) for item in items]


class RuleRepository:
    """Repository for business rule CRUD operations."""

    def __init__(self, db: Session):
        """Initialize repository with database session."""
        self.db = db

    def get_all(self, entity_type: Optional[str] = None) -> List[BusinessRuleRecord]:
        """Get all rules, highest priority first.

        Args:
            entity_type: Restrict to one entity type

        Returns:
            List of rules
        """
        query = self.db.query(BusinessRuleRecord)
        if entity_type:
            query = query.filter_by(entity_type=entity_type)
        return query.order_by(
            BusinessRuleRecord.priority.desc(), BusinessRuleRecord.created_at
        ).all()

    def get_active(self, entity_type: Optional[str] = None) -> List[BusinessRuleRecord]:
        """Get all active rules, highest priority first."""
        query = self.db.query(BusinessRuleRecord).filter_by(status=RuleStatus.ACTIVE.value)
        if entity_type:
            query = query.filter_by(entity_type=entity_type)
        return query.order_by(
            BusinessRuleRecord.priority.desc(), BusinessRuleRecord.created_at
        ).all()

    def get_by_id(self, rule_id: str) -> Optional[BusinessRuleRecord]:
        """Get a rule by ID."""
        return self.db.query(BusinessRuleRecord).filter_by(id=rule_id).first()

    def get_by_name(self, name: str) -> Optional[BusinessRuleRecord]:
        """Get a rule by name."""
        return self.db.query(BusinessRuleRecord).filter_by(name=name).first()

    def get_matching_rules(self, context: ProcessingContext) -> List[BusinessRule]:
        """Active rules whose trigger fits the context, highest priority first.

        Args:
            context: Entity event about to be processed

        Returns:
            Rules ready to hand to the processor
        """
        if context.entity_type is None:
            return []
        candidates = [
            BusinessRule.model_validate(record)
            for record in self.get_active(context.entity_type.value)
        ]
        return [rule for rule in candidates if rule_applies(rule, context)]

    def create(
        self,
        rule: BusinessRuleInput,
        created_by: Optional[str] = None,
    ) -> BusinessRuleRecord:
        """Create a new rule.

        Args:
            rule: Rule definition
            created_by: User creating the rule

        Returns:
            Created rule

        Raises:
            RuleValidationError: If the definition is incomplete
        """
        errors = validate_for_storage(rule)
        if errors:
            raise RuleValidationError(errors)

        record = BusinessRuleRecord(
            name=rule.name.strip(),
            description=rule.description,
            entity_type=rule.entity_type.value,
            trigger_type=rule.trigger_type.value,
            trigger_events=list(rule.trigger_events),
            trigger_fields=list(rule.trigger_fields),
            conditions=_dump(rule.conditions),
            actions=_dump(rule.actions),
            status=rule.status.value,
            priority=rule.priority,
            created_by=created_by,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def update(self, rule_id: str, changes: BusinessRuleUpdate) -> Optional[BusinessRuleRecord]:
        """Update a rule; the result is validated like a new rule.

        Args:
            rule_id: Rule ID
            changes: Fields to change

        Returns:
            Updated rule or None if not found

        Raises:
            RuleValidationError: If the updated definition is incomplete
        """
        record = self.get_by_id(rule_id)
        if not record:
            return None

        data = BusinessRule.model_validate(record).model_dump(
            include=set(BusinessRuleInput.model_fields)
        )
        data.update(changes.model_dump(exclude_unset=True, exclude_none=True))
        merged = BusinessRuleInput.model_validate(data)
        errors = validate_for_storage(merged)
        if errors:
            raise RuleValidationError(errors)

        record.name = merged.name.strip()
        record.description = merged.description
        record.trigger_events = list(merged.trigger_events)
        record.trigger_fields = list(merged.trigger_fields)
        record.conditions = _dump(merged.conditions)
        record.actions = _dump(merged.actions)
        record.status = merged.status.value
        record.priority = merged.priority
        record.updated_at = _utcnow()

        self.db.flush()
        return record

    def set_status(self, rule_id: str, status: RuleStatus) -> Optional[BusinessRuleRecord]:
        rule = self.get_by_id(rule_id)
        if not rule:
            return None

        rule.status = status.value
        rule.updated_at = _utcnow()
        self.db.flush()
        return rule

    def activate(self, rule_id: str) -> Optional[BusinessRuleRecord]:
        """Mark a rule ACTIVE."""
        return self.set_status(rule_id, RuleStatus.ACTIVE)

    def deactivate(self, rule_id: str) -> Optional[BusinessRuleRecord]:
        """Mark a rule INACTIVE."""
        return self.set_status(rule_id, RuleStatus.INACTIVE)

    def duplicate(
        self,
        rule_id: str,
        name: str,
        created_by: Optional[str] = None,
    ) -> Optional[BusinessRuleRecord]:
        """Copy a rule under a new name; the copy starts as a draft.

        Args:
            rule_id: Rule to copy
            name: Name for the copy
            created_by: User creating the copy

        Returns:
            The copy, or None if the source rule was not found
        """
        source = self.get_by_id(rule_id)
        if not source:
            return None

        definition = BusinessRuleInput.model_validate(
            BusinessRule.model_validate(source).model_dump(
                include=set(BusinessRuleInput.model_fields)
            )
        )
        definition.name = name
        definition.status = RuleStatus.DRAFT
        return self.create(definition, created_by=created_by)

    def delete(self, rule_id: str) -> bool:
        """Delete a rule.

        Args:
            rule_id: Rule ID

        Returns:
            True if deleted, False if not found
        """
        rule = self.get_by_id(rule_id)
        if not rule:
            return False

        self.db.delete(rule)
        self.db.flush()
        return True


class RuleExecutionRepository:
    """Repository for reading recorded rule executions."""

    def __init__(self, db: Session):
        self.db = db

    def list_recent(
        self,
        rule_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[RuleExecution]:
        """Most recent executions, newest first."""
        query = self.db.query(RuleExecution)
        if rule_id:
            query = query.filter_by(rule_id=rule_id)
        return query.order_by(RuleExecution.executed_at.desc()).limit(limit).all()

    def get_analytics(
        self,
        entity_type: Optional[str] = None,
        days: int = 30,
    ) -> Dict[str, Any]:
        """Aggregate executions over a trailing window.

        Args:
            entity_type: Restrict to one entity type
            days: Window length in days

        Returns:
            Dict with totals and a per-rule breakdown
        """
        since = _utcnow() - timedelta(days=days)

        query = self.db.query(RuleExecution).filter(RuleExecution.executed_at >= since)
        if entity_type:
            query = query.filter(RuleExecution.entity_type == entity_type)
        executions = query.all()

        per_rule: Dict[str, Dict[str, Any]] = {}
        for execution in executions:
            stats = per_rule.setdefault(
                execution.rule_id,
                {
                    "rule_id": execution.rule_id,
                    "rule_name": execution.rule.name if execution.rule else None,
                    "executions": 0,
                    "matches": 0,
                    "notifications_created": 0,
                    "tasks_created": 0,
                    "activities_created": 0,
                    "errors": 0,
                },
            )
            stats["executions"] += 1
            stats["matches"] += 1 if execution.conditions_met else 0
            stats["notifications_created"] += execution.notifications_created
            stats["tasks_created"] += execution.tasks_created
            stats["activities_created"] += execution.activities_created
            stats["errors"] += len(execution.errors or [])

        rules_query = self.db.query(BusinessRuleRecord)
        if entity_type:
            rules_query = rules_query.filter(BusinessRuleRecord.entity_type == entity_type)
        total_rules = rules_query.count()
        active_rules = rules_query.filter(
            BusinessRuleRecord.status == RuleStatus.ACTIVE.value
        ).count()

        total = len(executions)
        matched = sum(1 for e in executions if e.conditions_met)
        with_errors = sum(1 for e in executions if e.errors)
        return {
            "period_days": days,
            "entity_type": entity_type,
            "total_rules": total_rules,
            "active_rules": active_rules,
            "total_executions": total,
            "total_matches": matched,
            "match_rate": round(matched / total, 4) if total else 0.0,
            "error_rate": round(with_errors * 100 / total, 2) if total else 0.0,
            "notifications_created": sum(e.notifications_created for e in executions),
            "tasks_created": sum(e.tasks_created for e in executions),
            "activities_created": sum(e.activities_created for e in executions),
            "rules": sorted(per_rule.values(), key=lambda s: s["executions"], reverse=True),
        }
