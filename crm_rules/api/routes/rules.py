"""Rules API routes."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from crm_rules.api.deps import get_db, require_api_key
from crm_rules.core.rules.models import (
    BusinessRule,
    BusinessRuleInput,
    BusinessRuleUpdate,
    DuplicateRuleRequest,
    EntityType,
    ValidationResponse,
)
from crm_rules.core.rules.repository import RuleRepository
from crm_rules.core.rules.validation import RuleValidationError, validate_rule

router = APIRouter(dependencies=[Depends(require_api_key)])


def _get_or_404(repo: RuleRepository, rule_id: str):
    rule = repo.get_by_id(rule_id)
    if not rule:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Rule {rule_id} not found",
        )
    return rule


def _ensure_name_free(repo: RuleRepository, name: Optional[str]) -> None:
    if name and repo.get_by_name(name.strip()):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Rule named '{name}' already exists",
        )


def _invalid(e: RuleValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": "Validation failed", "errors": e.errors},
    )


@router.get("/", response_model=List[BusinessRule])
def list_rules(
    active_only: bool = False,
    entity_type: Optional[EntityType] = None,
    db: Session = Depends(get_db),
):
    """List rules, highest priority first."""
    repo = RuleRepository(db)
    entity = entity_type.value if entity_type else None
    if active_only:
        return repo.get_active(entity)
    return repo.get_all(entity)


@router.post("/", response_model=BusinessRule, status_code=status.HTTP_201_CREATED)
def add_rule(
    payload: BusinessRuleInput,
    db: Session = Depends(get_db),
):
    """Create a new rule."""
    repo = RuleRepository(db)
    _ensure_name_free(repo, payload.name)

    try:
        return repo.create(payload)
    except RuleValidationError as e:
        raise _invalid(e)


@router.post("/validate", response_model=ValidationResponse)
def validate_rule_definition(payload: BusinessRuleInput):
    """Check a rule definition without storing it."""
    errors = validate_rule(payload)
    return ValidationResponse(valid=not errors, errors=errors)


@router.get("/{rule_id}", response_model=BusinessRule)
def get_rule(
    rule_id: str,
    db: Session = Depends(get_db),
):
    """Get a specific rule by ID."""
    return _get_or_404(RuleRepository(db), rule_id)


@router.patch("/{rule_id}", response_model=BusinessRule)
def update_rule(
    rule_id: str,
    payload: BusinessRuleUpdate,
    db: Session = Depends(get_db),
):
    """Update a rule."""
    repo = RuleRepository(db)
    rule = _get_or_404(repo, rule_id)

    # Check for name conflict
    if payload.name and payload.name.strip() != rule.name:
        _ensure_name_free(repo, payload.name)

    try:
        return repo.update(rule_id, payload)
    except RuleValidationError as e:
        raise _invalid(e)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(
    rule_id: str,
    db: Session = Depends(get_db),
):
    """Delete a rule by ID."""
    repo = RuleRepository(db)
    _get_or_404(repo, rule_id)
    repo.delete(rule_id)


@router.post("/{rule_id}/activate", response_model=BusinessRule)
def activate_rule(
    rule_id: str,
    db: Session = Depends(get_db),
):
    """Make a rule take part in processing."""
    repo = RuleRepository(db)
    _get_or_404(repo, rule_id)
    return repo.activate(rule_id)


@router.post("/{rule_id}/deactivate", response_model=BusinessRule)
def deactivate_rule(
    rule_id: str,
    db: Session = Depends(get_db),
):
    """Stop a rule from being processed."""
    repo = RuleRepository(db)
    _get_or_404(repo, rule_id)
    return repo.deactivate(rule_id)


@router.post(
    "/{rule_id}/duplicate",
    response_model=BusinessRule,
    status_code=status.HTTP_201_CREATED,
)
def duplicate_rule(
    rule_id: str,
    payload: DuplicateRuleRequest,
    db: Session = Depends(get_db),
):
    """Copy a rule under a new name; the copy starts as DRAFT."""
    repo = RuleRepository(db)
    _get_or_404(repo, rule_id)
    _ensure_name_free(repo, payload.name)

    try:
        return repo.duplicate(rule_id, payload.name)
    except RuleValidationError as e:
        raise _invalid(e)
