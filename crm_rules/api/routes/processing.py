"""Processing API routes."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from crm_rules.api.deps import get_db, get_dispatcher, require_api_key
from crm_rules.core.actions.dispatcher import BaseDispatcher
from crm_rules.core.rules.engine import RuleProcessor
from crm_rules.core.rules.models import EntityType, ProcessingContext, RuleExecutionResponse
from crm_rules.core.rules.repository import RuleExecutionRepository, RuleRepository
from crm_rules.core.rules.results import ProcessingSummary
from crm_rules.core.rules.stats import DatabaseStatsCollector
from crm_rules.core.rules.validation import InvalidContextError

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.post("/", response_model=ProcessingSummary)
def process_event(
    context: ProcessingContext,
    db: Session = Depends(get_db),
    dispatcher: BaseDispatcher = Depends(get_dispatcher),
):
    """Evaluate the rules matching an entity event and dispatch their actions."""
    rules = RuleRepository(db).get_matching_rules(context)
    processor = RuleProcessor(dispatcher=dispatcher, stats=DatabaseStatsCollector(db))

    try:
        results = processor.process(context, rules)
    except InvalidContextError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Invalid processing context", "errors": e.errors},
        )

    return ProcessingSummary.from_results(results)


@router.get("/executions", response_model=List[RuleExecutionResponse])
def list_executions(
    rule_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Recent rule executions, newest first."""
    return RuleExecutionRepository(db).list_recent(rule_id=rule_id, limit=limit)


@router.get("/analytics")
def get_analytics(
    entity_type: Optional[EntityType] = None,
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Execution totals over a trailing window."""
    return RuleExecutionRepository(db).get_analytics(
        entity_type=entity_type.value if entity_type else None,
        days=days,
    )
