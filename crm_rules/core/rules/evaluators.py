"""Condition evaluators for each operator, and condition-set combination."""

from __future__ import annotations

import logging
import operator as op
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .intervals import parse_interval
from .models import Condition, ConditionOperator
from .values import (
    is_null,
    is_truthy,
    read_field,
    to_number,
    to_text,
    to_timestamp,
    utc_now_ms,
)

logger = logging.getLogger(__name__)


class ConditionEvaluator(ABC):
    """Abstract base class for condition evaluators."""

    @abstractmethod
    def evaluate(
        self,
        field_value: Any,
        value: Optional[str],
        *,
        field: Optional[str] = None,
        change_data: Optional[Mapping[str, Any]] = None,
        now_ms: Optional[float] = None,
    ) -> bool:
        """Evaluate if the condition holds.

        Args:
            field_value: Current value read from the entity (MISSING if absent)
            value: Comparison value from the condition
            field: Field name, used to look up prior values
            change_data: ``original_<field>`` values for this update, if any
            now_ms: Evaluation time in epoch milliseconds

        Returns:
            True if the condition holds
        """
        ...


class EqualsEvaluator(ConditionEvaluator):
    """Text equality; ``1000`` equals ``"1000"``."""

    def evaluate(self, field_value, value, **_: Any) -> bool:
        return to_text(field_value) == to_text(value)


class NotEqualsEvaluator(ConditionEvaluator):
    """Negation of text equality."""

    def evaluate(self, field_value, value, **_: Any) -> bool:
        return to_text(field_value) != to_text(value)


class TextMatchEvaluator(ConditionEvaluator):
    """Case-insensitive substring, prefix or suffix match."""

    def __init__(self, match: Callable[[str, str], bool]):
        self.match = match

    def evaluate(self, field_value, value, **_: Any) -> bool:
        return self.match(to_text(field_value).lower(), to_text(value).lower())


class NumericComparisonEvaluator(ConditionEvaluator):
    """Numeric comparison; unparsable numbers never compare true."""

    def __init__(self, compare: Callable[[float, float], bool]):
        self.compare = compare

    def evaluate(self, field_value, value, **_: Any) -> bool:
        return self.compare(to_number(field_value), to_number(value))


class IsNullEvaluator(ConditionEvaluator):
    """True for missing and null fields only; 0 and False are values."""

    def evaluate(self, field_value, value, **_: Any) -> bool:
        return is_null(field_value)


class IsNotNullEvaluator(ConditionEvaluator):
    def evaluate(self, field_value, value, **_: Any) -> bool:
        return not is_null(field_value)


def split_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated condition value into trimmed tokens."""
    return [token.strip() for token in to_text(value).split(",")]


class InListEvaluator(ConditionEvaluator):
    """Membership in a comma-separated list."""

    def evaluate(self, field_value, value, **_: Any) -> bool:
        return to_text(field_value) in split_list(value)


class NotInListEvaluator(ConditionEvaluator):
    def evaluate(self, field_value, value, **_: Any) -> bool:
        return to_text(field_value) not in split_list(value)


class AgeEvaluator(ConditionEvaluator):
    """Compares a timestamp field's age against an interval like "2 days"."""

    def __init__(self, older: bool):
        self.older = older

    def evaluate(self, field_value, value, *, now_ms=None, **_: Any) -> bool:
        if not is_truthy(field_value):
            return False
        timestamp = to_timestamp(field_value)
        if timestamp is None:
            return False
        age_ms = (now_ms if now_ms is not None else utc_now_ms()) - timestamp
        interval_ms = parse_interval(value)
        return age_ms > interval_ms if self.older else age_ms < interval_ms


class ChangedFromEvaluator(ConditionEvaluator):
    """Field held ``value`` before this update and no longer does."""

    def evaluate(self, field_value, value, *, field=None, change_data=None, **_: Any) -> bool:
        if change_data is None:
            return False
        original = read_field(change_data, f"original_{field}")
        expected = to_text(value)
        return to_text(original) == expected and to_text(field_value) != expected


class ChangedToEvaluator(ConditionEvaluator):
    """Field holds ``value`` now and did not before this update."""

    def evaluate(self, field_value, value, *, field=None, change_data=None, **_: Any) -> bool:
        if change_data is None:
            return False
        original = read_field(change_data, f"original_{field}")
        expected = to_text(value)
        return to_text(field_value) == expected and to_text(original) != expected


# Registry mapping operators to evaluators
EVALUATORS: Dict[ConditionOperator, ConditionEvaluator] = {
    ConditionOperator.EQUALS: EqualsEvaluator(),
    ConditionOperator.NOT_EQUALS: NotEqualsEvaluator(),
    ConditionOperator.CONTAINS: TextMatchEvaluator(lambda text, part: part in text),
    ConditionOperator.STARTS_WITH: TextMatchEvaluator(str.startswith),
    ConditionOperator.ENDS_WITH: TextMatchEvaluator(str.endswith),
    ConditionOperator.GREATER_THAN: NumericComparisonEvaluator(op.gt),
    ConditionOperator.LESS_THAN: NumericComparisonEvaluator(op.lt),
    ConditionOperator.GREATER_EQUAL: NumericComparisonEvaluator(op.ge),
    ConditionOperator.LESS_EQUAL: NumericComparisonEvaluator(op.le),
    ConditionOperator.IS_NULL: IsNullEvaluator(),
    ConditionOperator.IS_NOT_NULL: IsNotNullEvaluator(),
    ConditionOperator.IN: InListEvaluator(),
    ConditionOperator.NOT_IN: NotInListEvaluator(),
    ConditionOperator.OLDER_THAN: AgeEvaluator(older=True),
    ConditionOperator.NEWER_THAN: AgeEvaluator(older=False),
    ConditionOperator.CHANGED_FROM: ChangedFromEvaluator(),
    ConditionOperator.CHANGED_TO: ChangedToEvaluator(),
}


def get_evaluator(
    operator: Union[ConditionOperator, str, None],
) -> Optional[ConditionEvaluator]:
    """Get evaluator for an operator; None for unknown operators."""
    if isinstance(operator, ConditionOperator):
        return EVALUATORS.get(operator)
    return None


def _now_ms(now: Optional[datetime]) -> float:
    if now is None:
        return utc_now_ms()
    timestamp = to_timestamp(now)
    return timestamp if timestamp is not None else utc_now_ms()


def evaluate_condition(
    condition: Condition,
    entity_data: Optional[Mapping[str, Any]],
    change_data: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Evaluate one condition against an entity snapshot.

    Never raises: unknown operators and unreadable values evaluate to False.

    Args:
        condition: Condition to evaluate
        entity_data: Current entity snapshot
        change_data: ``original_<field>`` values for fields changed in this event
        now: Evaluation time (defaults to the current UTC time)

    Returns:
        True if the condition holds
    """
    evaluator = get_evaluator(condition.operator)
    if evaluator is None:
        logger.warning(f"Unknown condition operator: {condition.operator}")
        return False

    field_value = read_field(entity_data, condition.field)
    try:
        return bool(
            evaluator.evaluate(
                field_value,
                condition.value,
                field=condition.field,
                change_data=change_data,
                now_ms=_now_ms(now),
            )
        )
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(
            f"Condition on '{condition.field}' ({condition.operator.value}) "
            f"could not be evaluated: {e}"
        )
        return False


def evaluate_conditions(
    conditions: Optional[Sequence[Condition]],
    entity_data: Optional[Mapping[str, Any]],
    change_data: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Combine a condition set into one result.

    Untagged conditions are AND-ed together and OR-tagged conditions are
    OR-ed together. When at least one OR-tagged condition is present the OR
    result alone decides: the AND chain is still evaluated but discarded, so
    "A AND (B OR C)" cannot be expressed by mixing tags. Existing rules rely
    on this, keep it unless rule authors are migrated.

    An empty or missing condition list always matches.
    """
    if not conditions:
        return True

    and_result = True
    or_result = False
    saw_or = False

    for condition in conditions:
        met = evaluate_condition(condition, entity_data, change_data, now)
        if condition.is_or:
            saw_or = True
            or_result = or_result or met
        else:
            and_result = and_result and met

    return or_result if saw_or else and_result
