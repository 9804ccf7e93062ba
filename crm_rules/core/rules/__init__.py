"""Rule definitions, condition evaluation and validation.

The processor, repositories and statistics collectors live in the
``engine``, ``repository`` and ``stats`` submodules.
"""

from .models import (
    ActionType,
    BusinessRule,
    BusinessRuleInput,
    BusinessRuleUpdate,
    Condition,
    ConditionOperator,
    EntityType,
    LogicalOperator,
    ProcessingContext,
    RuleAction,
    RuleStatus,
    TriggerType,
)
from .intervals import parse_interval
from .evaluators import EVALUATORS, ConditionEvaluator, evaluate_condition, evaluate_conditions, get_evaluator
from .validation import InvalidContextError, RuleValidationError, validate_context, validate_rule
from .changes import build_change_data, rule_applies

__all__ = [
    "ActionType",
    "BusinessRule",
    "BusinessRuleInput",
    "BusinessRuleUpdate",
    "Condition",
    "ConditionOperator",
    "EntityType",
    "LogicalOperator",
    "ProcessingContext",
    "RuleAction",
    "RuleStatus",
    "TriggerType",
    "parse_interval",
    "EVALUATORS",
    "ConditionEvaluator",
    "evaluate_condition",
    "evaluate_conditions",
    "get_evaluator",
    "InvalidContextError",
    "RuleValidationError",
    "validate_context",
    "validate_rule",
    "build_change_data",
    "rule_applies",
]
