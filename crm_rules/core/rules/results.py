"""Per-rule execution results and pass summaries."""

from __future__ import annotations

from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from crm_rules.core.actions.models import ActionOutcome, DispatchKind


class ExecutionResult(BaseModel):
    """Outcome of evaluating one rule against one context."""

    rule_id: str
    rule_name: str
    matched: bool
    actions: List[ActionOutcome] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    notifications_created: int = 0
    tasks_created: int = 0
    activities_created: int = 0

    def record_dispatch(self, kind: DispatchKind) -> None:
        """Count an accepted dispatch against its kind."""
        if kind == DispatchKind.NOTIFICATION:
            self.notifications_created += 1
        elif kind == DispatchKind.TASK:
            self.tasks_created += 1
        elif kind == DispatchKind.ACTIVITY:
            self.activities_created += 1

    @property
    def last_note(self) -> Optional[str]:
        return self.notes[-1] if self.notes else None


class ProcessingSummary(BaseModel):
    """Totals across one processing pass."""

    rules_processed: int = 0
    rules_matched: int = 0
    notifications_created: int = 0
    tasks_created: int = 0
    activities_created: int = 0
    errors: List[str] = Field(default_factory=list)
    results: List[ExecutionResult] = Field(default_factory=list)

    @classmethod
    def from_results(cls, results: Sequence[ExecutionResult]) -> "ProcessingSummary":
        return cls(
            rules_processed=len(results),
            rules_matched=sum(1 for r in results if r.matched),
            notifications_created=sum(r.notifications_created for r in results),
            tasks_created=sum(r.tasks_created for r in results),
            activities_created=sum(r.activities_created for r in results),
            errors=[note for r in results for note in r.notes],
            results=list(results),
        )
