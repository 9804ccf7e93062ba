"""Structural validation for rule definitions and processing contexts."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from .models import (
    ActionType,
    BusinessRuleInput,
    ProcessingContext,
    TriggerType,
    tag_name,
)

_ITEM_LABELS = {"conditions": "Condition", "actions": "Action"}


class RuleValidationError(ValueError):
    """Raised when a rule definition is rejected; carries every message."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Validation failed: {', '.join(self.errors)}")


class InvalidContextError(ValueError):
    """Raised when a processing context is missing required members."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid processing context: {', '.join(self.errors)}")


def _describe_error(error: Dict[str, Any]) -> str:
    """Readable message for one pydantic error, e.g. "Condition 1: Invalid value: ..."."""
    loc = error.get("loc", ())
    msg = error.get("msg", "Invalid input")

    label = _ITEM_LABELS.get(loc[0]) if loc else None
    if label and len(loc) >= 3 and isinstance(loc[1], int):
        name = str(loc[2]).replace("_", " ")
        return f"{label} {loc[1] + 1}: Invalid {name}: {msg}"
    if label and len(loc) == 2 and isinstance(loc[1], int):
        return f"{label} {loc[1] + 1}: {msg}"
    if len(loc) == 1:
        return f"Invalid {str(loc[0]).replace('_', ' ')}: {msg}"
    return f"{'.'.join(str(part) for part in loc)}: {msg}"


def schema_errors(error: ValidationError) -> List[str]:
    """Messages for a rule mapping that does not fit the rule schema."""
    return [_describe_error(item) for item in error.errors()]


def _coerce(
    rule: Union[BusinessRuleInput, Mapping[str, Any]],
) -> Tuple[Optional[BusinessRuleInput], List[str]]:
    if isinstance(rule, BusinessRuleInput):
        return rule, []
    try:
        return BusinessRuleInput.model_validate(rule), []
    except ValidationError as e:
        return None, schema_errors(e)


def validate_rule(rule: Union[BusinessRuleInput, Mapping[str, Any]]) -> List[str]:
    """Check a rule definition before it is stored.

    All problems are collected; nothing is raised. A mapping whose values
    do not fit the rule schema (unknown tags, wrong types) is reported with
    one message per offending value.

    Args:
        rule: Rule definition (model or plain mapping)

    Returns:
        List of error messages, empty when the rule is valid
    """
    rule, errors = _coerce(rule)
    if rule is None:
        return errors

    if not rule.name or not rule.name.strip():
        errors.append("Rule name is required")

    if not rule.conditions:
        errors.append("At least one condition is required")

    if not rule.actions:
        errors.append("At least one action is required")

    if rule.trigger_type == TriggerType.EVENT_BASED and not rule.trigger_events:
        errors.append("Event-based rules must specify at least one trigger event")

    if rule.trigger_type == TriggerType.FIELD_CHANGE and not rule.trigger_fields:
        errors.append("Field-change rules must specify at least one trigger field")

    for index, condition in enumerate(rule.conditions, start=1):
        if not condition.field:
            errors.append(f"Condition {index}: Field is required")
        if not condition.operator:
            errors.append(f"Condition {index}: Operator is required")
        # Empty string is a legitimate value (IS_NULL / IS_NOT_NULL ignore it)
        if condition.value is None:
            errors.append(f"Condition {index}: Value is required")

    for index, action in enumerate(rule.actions, start=1):
        if not action.type:
            errors.append(f"Action {index}: Type is required")
        if action.type in (ActionType.NOTIFY_USER, ActionType.SEND_EMAIL) and not action.target:
            errors.append(f"Action {index}: Target is required for {tag_name(action.type)}")

    return errors


def validate_for_storage(rule: Union[BusinessRuleInput, Mapping[str, Any]]) -> List[str]:
    """Rule validation plus the columns a stored rule cannot do without."""
    rule, errors = _coerce(rule)
    if rule is None:
        return errors

    errors = validate_rule(rule)
    if rule.entity_type is None:
        errors.append("Entity type is required")
    if rule.trigger_type is None:
        errors.append("Trigger type is required")
    return errors


def validate_context(context: ProcessingContext) -> List[str]:
    """Check that a processing context carries everything evaluation needs.

    Args:
        context: Context submitted for processing

    Returns:
        List of error messages, empty when the context is usable
    """
    errors: List[str] = []

    if not context.entity_type:
        errors.append("Entity type is required")

    if not context.entity_id:
        errors.append("Entity ID is required")

    if not context.trigger_event:
        errors.append("Trigger event is required")

    if context.entity_data is None:
        errors.append("Entity data is required")

    return errors
