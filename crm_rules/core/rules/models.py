"""Pydantic schemas for business rule operations."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .values import to_text


class EntityType(str, Enum):
    """CRM entity types that rules can be attached to."""

    DEAL = "DEAL"
    LEAD = "LEAD"
    PERSON = "PERSON"
    ORGANIZATION = "ORGANIZATION"
    ACTIVITY = "ACTIVITY"
    TASK = "TASK"


class TriggerType(str, Enum):
    """How a rule gets offered for evaluation."""

    EVENT_BASED = "EVENT_BASED"
    FIELD_CHANGE = "FIELD_CHANGE"
    SCHEDULED = "SCHEDULED"


class RuleStatus(str, Enum):
    """Lifecycle status of a stored rule."""

    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class LogicalOperator(str, Enum):
    """How a condition joins the condition set."""

    AND = "AND"
    OR = "OR"


class ConditionOperator(str, Enum):
    """Supported condition operators."""

    # String comparisons
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"

    # Numeric comparisons
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    GREATER_EQUAL = "GREATER_EQUAL"
    LESS_EQUAL = "LESS_EQUAL"

    # Presence
    IS_NULL = "IS_NULL"
    IS_NOT_NULL = "IS_NOT_NULL"

    # Lists
    IN = "IN"
    NOT_IN = "NOT_IN"

    # Time intervals
    OLDER_THAN = "OLDER_THAN"
    NEWER_THAN = "NEWER_THAN"

    # Change detection (needs change data)
    CHANGED_FROM = "CHANGED_FROM"
    CHANGED_TO = "CHANGED_TO"

    def description(self) -> str:
        """Human-readable description of the operator."""
        descriptions = {
            ConditionOperator.EQUALS: "Field equals value (compared as text)",
            ConditionOperator.NOT_EQUALS: "Field does not equal value",
            ConditionOperator.CONTAINS: "Field contains value (case-insensitive)",
            ConditionOperator.STARTS_WITH: "Field starts with value (case-insensitive)",
            ConditionOperator.ENDS_WITH: "Field ends with value (case-insensitive)",
            ConditionOperator.GREATER_THAN: "Field is numerically greater than value",
            ConditionOperator.LESS_THAN: "Field is numerically less than value",
            ConditionOperator.GREATER_EQUAL: "Field is numerically greater than or equal to value",
            ConditionOperator.LESS_EQUAL: "Field is numerically less than or equal to value",
            ConditionOperator.IS_NULL: "Field is null or missing",
            ConditionOperator.IS_NOT_NULL: "Field has a value",
            ConditionOperator.IN: "Field is one of a comma-separated list",
            ConditionOperator.NOT_IN: "Field is not in a comma-separated list",
            ConditionOperator.OLDER_THAN: "Timestamp field is older than an interval (e.g. '2 days')",
            ConditionOperator.NEWER_THAN: "Timestamp field is newer than an interval (e.g. '30 minutes')",
            ConditionOperator.CHANGED_FROM: "Field changed away from value in this update",
            ConditionOperator.CHANGED_TO: "Field changed to value in this update",
        }
        return descriptions.get(self, "Unknown operator")

    @property
    def requires_change_data(self) -> bool:
        """Check if this operator compares against prior values."""
        return self in (ConditionOperator.CHANGED_FROM, ConditionOperator.CHANGED_TO)


class ActionType(str, Enum):
    """Supported rule action types."""

    NOTIFY_USER = "NOTIFY_USER"
    NOTIFY_OWNER = "NOTIFY_OWNER"
    SEND_EMAIL = "SEND_EMAIL"
    CREATE_TASK = "CREATE_TASK"
    CREATE_ACTIVITY = "CREATE_ACTIVITY"

    @property
    def requires_target(self) -> bool:
        """Check if this action needs an explicit target."""
        return self in (ActionType.NOTIFY_USER, ActionType.SEND_EMAIL)

    @property
    def is_notification(self) -> bool:
        """Check if this action produces a user notification."""
        return self in (ActionType.NOTIFY_USER, ActionType.NOTIFY_OWNER)


def tag_name(tag: Union[Enum, str, None]) -> str:
    """Spelling of an enum tag or raw string as stored in rule definitions."""
    if isinstance(tag, Enum):
        return str(tag.value)
    return "" if tag is None else str(tag)


class Condition(BaseModel):
    """A single predicate over one entity field.

    Unknown operator names loaded from storage are kept as plain strings so
    that evaluation can fall back to ``False`` instead of rejecting the rule.
    """

    field: Optional[str] = None
    operator: Optional[Union[ConditionOperator, str]] = None
    value: Optional[str] = None
    logical_operator: Optional[LogicalOperator] = None

    @field_validator("operator", mode="before")
    @classmethod
    def known_operator(cls, v: Any) -> Any:
        if isinstance(v, str) and v in ConditionOperator._value2member_map_:
            return ConditionOperator(v)
        return v

    @field_validator("value", mode="before")
    @classmethod
    def value_as_text(cls, v: Any) -> Any:
        # Numbers typed into rule forms arrive unquoted
        if isinstance(v, (bool, int, float)):
            return to_text(v)
        return v

    @property
    def is_or(self) -> bool:
        return self.logical_operator == LogicalOperator.OR


class RuleAction(BaseModel):
    """An instruction fired when a rule's conditions match."""

    type: Optional[Union[ActionType, str]] = None
    target: Optional[str] = None
    template: Optional[str] = None
    message: Optional[str] = None
    priority: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("type", mode="before")
    @classmethod
    def known_type(cls, v: Any) -> Any:
        if isinstance(v, str) and v in ActionType._value2member_map_:
            return ActionType(v)
        return v


class BusinessRuleInput(BaseModel):
    """Schema for creating or validating a rule.

    Every field is optional so that incomplete definitions reach
    ``validate_rule`` and come back with readable messages.
    """

    name: Optional[str] = None
    description: Optional[str] = None
    entity_type: Optional[EntityType] = None
    trigger_type: Optional[TriggerType] = None
    trigger_events: List[str] = Field(default_factory=list)
    trigger_fields: List[str] = Field(default_factory=list)
    conditions: List[Condition] = Field(default_factory=list)
    actions: List[RuleAction] = Field(default_factory=list)
    status: RuleStatus = RuleStatus.DRAFT
    priority: int = 0

    @field_validator("trigger_events", "trigger_fields", "conditions", "actions", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class BusinessRuleUpdate(BaseModel):
    """Schema for updating a rule."""

    name: Optional[str] = None
    description: Optional[str] = None
    trigger_events: Optional[List[str]] = None
    trigger_fields: Optional[List[str]] = None
    conditions: Optional[List[Condition]] = None
    actions: Optional[List[RuleAction]] = None
    status: Optional[RuleStatus] = None
    priority: Optional[int] = None


class BusinessRule(BusinessRuleInput):
    """A stored rule as seen by the engine and returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    entity_type: EntityType
    trigger_type: TriggerType = TriggerType.EVENT_BASED
    execution_count: int = 0
    last_execution: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        """Whether the rule takes part in evaluation."""
        return self.status == RuleStatus.ACTIVE


class DuplicateRuleRequest(BaseModel):
    """Schema for duplicating a rule under a new name."""

    name: str = Field(..., min_length=1, max_length=200)


class ProcessingContext(BaseModel):
    """Everything one rule-evaluation pass needs.

    Required members are optional here on purpose: a malformed context is
    reported by ``validate_context`` with one message per missing member.
    ``test_mode`` suppresses statistics recording only; actions are still
    dispatched.
    """

    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    trigger_event: Optional[str] = None
    entity_data: Optional[Dict[str, Any]] = None
    change_data: Optional[Dict[str, Any]] = None
    test_mode: bool = False


class ValidationResponse(BaseModel):
    """Result of validating a rule definition."""

    valid: bool
    errors: List[str] = Field(default_factory=list)


class RuleExecutionResponse(BaseModel):
    """Schema for a recorded rule execution."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    rule_id: str
    entity_type: str
    entity_id: str
    execution_trigger: str
    conditions_met: bool
    notifications_created: int = 0
    tasks_created: int = 0
    activities_created: int = 0
    errors: List[str] = Field(default_factory=list)
    executed_at: datetime
