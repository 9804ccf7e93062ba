"""FastAPI dependencies."""

from __future__ import annotations

from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from crm_rules.db.database import get_db as db_context
from crm_rules.config import get_settings
from crm_rules.core.actions.dispatcher import BaseDispatcher, build_dispatcher

settings = get_settings()


def get_db() -> Generator[Session, None, None]:
    """Yield a database session."""
    with db_context() as db:
        yield db


def get_dispatcher(db: Session = Depends(get_db)) -> BaseDispatcher:
    """Dispatcher for actions of matched rules."""
    return build_dispatcher(db)


def require_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    """Validate the X-API-Key header when an API key is configured.

    With no key configured every request is allowed (dev mode).
    """
    if not settings.api_key:
        return

    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
