"""SQLAlchemy ORM models."""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Get current UTC timestamp."""
    return datetime.utcnow()


class BusinessRule(Base):
    """Business rule definition."""

    __tablename__ = "business_rules"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    entity_type = Column(String(30), nullable=False)  # e.g., 'DEAL'
    trigger_type = Column(String(30), nullable=False)  # e.g., 'EVENT_BASED'
    trigger_events = Column(JSON, default=list, nullable=False)
    trigger_fields = Column(JSON, default=list, nullable=False)
    conditions = Column(JSON, default=list, nullable=False)
    actions = Column(JSON, default=list, nullable=False)
    status = Column(String(20), default="DRAFT", nullable=False)
    priority = Column(Integer, default=0, nullable=False)

    # Execution statistics
    execution_count = Column(Integer, default=0, nullable=False)
    last_execution = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)

    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    executions = relationship(
        "RuleExecution", back_populates="rule", cascade="all, delete-orphan"
    )
    notifications = relationship("BusinessRuleNotification", back_populates="rule")

    @property
    def is_active(self) -> bool:
        """Whether the rule takes part in evaluation."""
        return self.status == "ACTIVE"

    def __repr__(self) -> str:
        return f"<BusinessRule(id={self.id}, name={self.name}, entity={self.entity_type})>"


class RuleExecution(Base):
    """One evaluation of a rule against an entity."""

    __tablename__ = "rule_executions"

    id = Column(String, primary_key=True, default=generate_uuid)
    rule_id = Column(String, ForeignKey("business_rules.id"), nullable=False)
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(String, nullable=False)
    execution_trigger = Column(String(50), nullable=False)
    conditions_met = Column(Boolean, default=False, nullable=False)
    notifications_created = Column(Integer, default=0, nullable=False)
    tasks_created = Column(Integer, default=0, nullable=False)
    activities_created = Column(Integer, default=0, nullable=False)
    errors = Column(JSON, default=list, nullable=False)
    executed_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    rule = relationship("BusinessRule", back_populates="executions")

    def __repr__(self) -> str:
        return f"<RuleExecution(id={self.id}, rule_id={self.rule_id}, met={self.conditions_met})>"


class BusinessRuleNotification(Base):
    """Notification produced by a business rule action."""

    __tablename__ = "business_rule_notifications"

    id = Column(String, primary_key=True, default=generate_uuid)
    rule_id = Column(String, ForeignKey("business_rules.id"), nullable=True)
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(String, nullable=False)
    user_id = Column(String, nullable=False)
    title = Column(String(500), nullable=False)
    message = Column(Text, nullable=True)
    notification_type = Column(String(100), nullable=False)
    priority = Column(Integer, default=1, nullable=False)
    actions = Column(JSON, default=dict, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    read_at = Column(DateTime, nullable=True)

    # Relationships
    rule = relationship("BusinessRule", back_populates="notifications")

    def __repr__(self) -> str:
        return f"<BusinessRuleNotification(id={self.id}, user_id={self.user_id}, title={self.title})>"
