"""Execution statistics collectors."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime
from typing import Dict, List, Tuple

from sqlalchemy.orm import Session

from crm_rules.db.models import BusinessRule as BusinessRuleRecord
from crm_rules.db.models import RuleExecution
from .models import BusinessRule, ProcessingContext
from .results import ExecutionResult

logger = logging.getLogger(__name__)


class StatisticsCollector(ABC):
    """Abstract base class for statistics collectors."""

    @abstractmethod
    def record(
        self,
        rule: BusinessRule,
        context: ProcessingContext,
        result: ExecutionResult,
    ) -> None:
        """Record one rule execution.

        Args:
            rule: Rule that was evaluated
            context: Context it was evaluated against
            result: What the evaluation produced
        """
        ...


class InMemoryStatsCollector(StatisticsCollector):
    """Keeps counters in memory; handy for the CLI and tests."""

    def __init__(self):
        self.executions: Counter = Counter()
        self.matches: Counter = Counter()
        self.last_errors: Dict[str, str] = {}
        self.records: List[Tuple[str, str, bool]] = []

    def record(self, rule, context, result) -> None:
        self.executions[rule.id] += 1
        self.records.append((rule.id, context.entity_id, result.matched))
        if result.matched:
            self.matches[rule.id] += 1
        if result.notes:
            self.last_errors[rule.id] = result.last_note


class DatabaseStatsCollector(StatisticsCollector):
    """Writes rule_executions rows and updates rule counters."""

    def __init__(self, db: Session):
        self.db = db

    def record(self, rule, context, result) -> None:
        execution = RuleExecution(
            rule_id=rule.id,
            entity_type=context.entity_type.value,
            entity_id=context.entity_id,
            execution_trigger=context.trigger_event,
            conditions_met=result.matched,
            notifications_created=result.notifications_created,
            tasks_created=result.tasks_created,
            activities_created=result.activities_created,
            errors=list(result.notes),
        )
        self.db.add(execution)

        stored = self.db.query(BusinessRuleRecord).filter_by(id=rule.id).first()
        if stored is None:
            logger.warning(f"Rule {rule.id} not found; execution recorded without counters")
            self.db.flush()
            return

        if result.matched:
            stored.execution_count = (stored.execution_count or 0) + 1
            stored.last_execution = datetime.utcnow()
        if result.notes:
            stored.last_error = result.last_note

        self.db.flush()
