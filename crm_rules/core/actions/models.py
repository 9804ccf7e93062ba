"""Pydantic schemas for action resolution and dispatch."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from crm_rules.core.rules.models import EntityType, RuleAction


class DispatchKind(str, Enum):
    """What the receiving collaborator should create."""

    NOTIFICATION = "notification"
    TASK = "task"
    ACTIVITY = "activity"


class ActionDecision(BaseModel):
    """Whether an action can run against the current entity, and why not."""

    can_execute: bool
    reason: Optional[str] = None


class DispatchRequest(BaseModel):
    """Instruction handed to a dispatcher for one executable action."""

    kind: DispatchKind
    action_type: str
    rule_id: str
    rule_name: str
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    user_id: Optional[str] = None
    title: str
    message: Optional[str] = None
    notification_type: str = "business_rule"
    priority: int = 1
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ActionOutcome(BaseModel):
    """What happened to one action of a matched rule."""

    action: RuleAction
    can_execute: bool
    reason: Optional[str] = None
    dispatched: bool = False
    request: Optional[DispatchRequest] = None
