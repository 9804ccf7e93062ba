"""Action preconditions, notification titles and dispatch request building."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional

from crm_rules.core.rules.models import (
    ActionType,
    BusinessRule,
    ProcessingContext,
    RuleAction,
    tag_name,
)
from crm_rules.core.rules.values import is_null, is_truthy, to_text

from .models import ActionDecision, DispatchKind, DispatchRequest

logger = logging.getLogger(__name__)

DEFAULT_TITLE_TEMPLATE = "Business Rule Notification"
DEFAULT_NOTIFICATION_TYPE = "business_rule"
DEFAULT_ENTITY_NAME = "Entity"

# Checked in order; the first non-empty one wins
OWNER_FIELDS = ("assigned_to_user_id", "user_id", "created_by_user_id")
DISPLAY_NAME_FIELDS = ("name", "title", "contact_name")

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")

_DISPATCH_KINDS = {
    ActionType.NOTIFY_USER: DispatchKind.NOTIFICATION,
    ActionType.NOTIFY_OWNER: DispatchKind.NOTIFICATION,
    ActionType.CREATE_TASK: DispatchKind.TASK,
    ActionType.CREATE_ACTIVITY: DispatchKind.ACTIVITY,
}


def _first_truthy(entity_data: Optional[Mapping[str, Any]], fields) -> Optional[Any]:
    if not entity_data:
        return None
    for field in fields:
        value = entity_data.get(field)
        if is_truthy(value):
            return value
    return None


def resolve_owner(entity_data: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Owner of an entity: assignee, then user, then creator."""
    owner = _first_truthy(entity_data, OWNER_FIELDS)
    return None if owner is None else to_text(owner)


def resolve_action(
    action: RuleAction, entity_data: Optional[Mapping[str, Any]]
) -> ActionDecision:
    """Decide whether an action can run for an entity.

    Args:
        action: Action from a matched rule
        entity_data: Current entity snapshot

    Returns:
        Decision with the reason when the action cannot run
    """
    if action.type == ActionType.NOTIFY_USER:
        if action.target:
            return ActionDecision(can_execute=True)
        return ActionDecision(can_execute=False, reason="No target user specified")

    if action.type == ActionType.NOTIFY_OWNER:
        if resolve_owner(entity_data) is not None:
            return ActionDecision(can_execute=True)
        return ActionDecision(can_execute=False, reason="No owner found for entity")

    if action.type in (ActionType.CREATE_TASK, ActionType.CREATE_ACTIVITY):
        return ActionDecision(can_execute=True)

    logger.warning(f"Unknown action type: {tag_name(action.type)}")
    return ActionDecision(
        can_execute=False, reason=f"Unknown action type: {tag_name(action.type)}"
    )


def entity_display_name(entity_data: Optional[Mapping[str, Any]]) -> str:
    name = _first_truthy(entity_data, DISPLAY_NAME_FIELDS)
    return DEFAULT_ENTITY_NAME if name is None else to_text(name)


def build_notification_title(
    action: RuleAction,
    entity_data: Optional[Mapping[str, Any]],
    default_template: str = DEFAULT_TITLE_TEMPLATE,
) -> str:
    """Title shown to the user, e.g. "High Value Deal - Acme Corp".

    Args:
        action: Action whose template heads the title
        entity_data: Entity snapshot supplying the display name
        default_template: Used when the action carries no template

    Returns:
        "<template> - <entity name>"
    """
    template = action.template or default_template
    return f"{template} - {entity_display_name(entity_data)}"


def render_message(
    message: Optional[str],
    entity_type: Optional[str],
    entity_data: Optional[Mapping[str, Any]],
) -> Optional[str]:
    """Fill ``{{field}}`` and ``{{<entity>_field}}`` placeholders.

    Placeholders with no matching field are left as written.
    """
    if not message:
        return message

    data = entity_data or {}
    prefix = f"{entity_type.lower()}_" if entity_type else None

    def substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in data and prefix and key.startswith(prefix):
            key = key[len(prefix):]
        if key not in data:
            return match.group(0)
        value = data[key]
        return "" if is_null(value) else to_text(value)

    return _PLACEHOLDER_RE.sub(substitute, message)


def build_dispatch_request(
    action: RuleAction,
    rule: BusinessRule,
    context: ProcessingContext,
    default_title: str = DEFAULT_TITLE_TEMPLATE,
    default_notification_type: str = DEFAULT_NOTIFICATION_TYPE,
) -> DispatchRequest:
    """Build the dispatch instruction for an action that passed resolve_action.

    Raises:
        ValueError: If the action type has no dispatch kind
    """
    kind = _DISPATCH_KINDS.get(action.type)
    if kind is None:
        raise ValueError(f"Unknown action type: {tag_name(action.type)}")

    entity_data = context.entity_data
    owner = resolve_owner(entity_data)
    if action.type == ActionType.NOTIFY_USER:
        user_id = action.target
    elif action.type == ActionType.NOTIFY_OWNER:
        user_id = owner
    else:
        # Tasks and activities go to the explicit target, else the owner
        user_id = action.target or owner

    entity_type = tag_name(context.entity_type) or None

    return DispatchRequest(
        kind=kind,
        action_type=tag_name(action.type),
        rule_id=rule.id,
        rule_name=rule.name,
        entity_type=context.entity_type,
        entity_id=context.entity_id,
        user_id=user_id,
        title=build_notification_title(action, entity_data, default_title),
        message=render_message(action.message, entity_type, entity_data),
        notification_type=(
            action.template
            if kind == DispatchKind.NOTIFICATION and action.template
            else default_notification_type
        ),
        priority=action.priority or 1,
        metadata=dict(action.metadata or {}),
    )
