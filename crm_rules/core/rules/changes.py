"""Change data construction and trigger applicability."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Set

from .models import BusinessRule, ProcessingContext, TriggerType
from .values import MISSING

ORIGINAL_PREFIX = "original_"


def build_change_data(
    new_data: Mapping[str, Any],
    old_data: Optional[Mapping[str, Any]],
) -> Optional[Dict[str, Any]]:
    """Collect prior values of the fields that changed.

    Args:
        new_data: Entity snapshot after the write
        old_data: Entity snapshot before the write (None on create)

    Returns:
        Mapping of ``original_<field>`` to the old value for every field of
        ``new_data`` whose value differs, or None when there is no prior state
    """
    if old_data is None:
        return None

    changes: Dict[str, Any] = {}
    for key, value in new_data.items():
        old_value = old_data.get(key, MISSING)
        if old_value is MISSING or old_value != value:
            changes[f"{ORIGINAL_PREFIX}{key}"] = None if old_value is MISSING else old_value
    return changes


def changed_fields(change_data: Optional[Mapping[str, Any]]) -> Set[str]:
    """Names of the fields present in change data."""
    if not change_data:
        return set()
    return {
        key[len(ORIGINAL_PREFIX):]
        for key in change_data
        if key.startswith(ORIGINAL_PREFIX)
    }


def rule_applies(rule: BusinessRule, context: ProcessingContext) -> bool:
    """Decide whether a stored rule should be offered for a context.

    Updates carrying change data are matched against field-change rules
    (restricted to their trigger fields when they list any); everything else
    is matched against event-based rules by trigger event. Scheduled rules
    never react to entity events.
    """
    if not rule.is_active or rule.entity_type != context.entity_type:
        return False

    if context.change_data is not None:
        if rule.trigger_type != TriggerType.FIELD_CHANGE:
            return False
        if not rule.trigger_fields:
            return True
        return bool(changed_fields(context.change_data) & set(rule.trigger_fields))

    if rule.trigger_type != TriggerType.EVENT_BASED:
        return False
    return context.trigger_event in rule.trigger_events
