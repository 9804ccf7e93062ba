"""Dispatchers that hand executable actions to their collaborators."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import List, Optional

import requests
from rich.console import Console
from rich.panel import Panel
from sqlalchemy.orm import Session

from crm_rules.config import get_settings
from crm_rules.db.models import BusinessRuleNotification

from .models import DispatchKind, DispatchRequest

logger = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 2

_KIND_STYLES = {
    DispatchKind.NOTIFICATION: ("NOTIFICATION", "cyan"),
    DispatchKind.TASK: ("TASK", "yellow"),
    DispatchKind.ACTIVITY: ("ACTIVITY", "magenta"),
}


class BaseDispatcher(ABC):
    """Abstract base class for dispatchers."""

    @abstractmethod
    def dispatch(self, request: DispatchRequest) -> bool:
        """Deliver one action.

        Args:
            request: Instruction built for an executable action

        Returns:
            True if the collaborator accepted the request
        """
        ...


class ConsoleDispatcher(BaseDispatcher):
    """Console-based dispatcher using Rich for formatting."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def dispatch(self, request: DispatchRequest) -> bool:
        label, color = _KIND_STYLES[request.kind]

        content = f"[bold {color}]{request.title}[/bold {color}]\n"
        content += (
            f"[dim]{request.rule_name} | "
            f"{request.entity_type.value if request.entity_type else '-'} "
            f"{request.entity_id or ''}[/dim]"
        )
        if request.user_id:
            content += f"\n[dim]for user {request.user_id}[/dim]"
        if request.message:
            content += f"\n\n{request.message}"

        self.console.print(
            Panel(content, title=f"[bold {color}]{label}[/bold {color}]", border_style=color)
        )
        return True


class DatabaseDispatcher(BaseDispatcher):
    """Stores notifications in the business_rule_notifications table.

    Tasks and activities belong to the host CRM; they are not accepted here.
    """

    def __init__(self, db: Session):
        self.db = db

    def dispatch(self, request: DispatchRequest) -> bool:
        if request.kind != DispatchKind.NOTIFICATION:
            logger.debug(f"No local store for {request.kind.value} from rule {request.rule_name}")
            return False

        notification = BusinessRuleNotification(
            rule_id=request.rule_id,
            entity_type=request.entity_type.value if request.entity_type else None,
            entity_id=request.entity_id,
            user_id=request.user_id,
            title=request.title,
            message=request.message,
            notification_type=request.notification_type,
            priority=request.priority,
            actions=request.metadata.get("actions"),
        )
        self.db.add(notification)
        self.db.flush()
        logger.debug(f"Stored notification {notification.id} for user {request.user_id}")
        return True


class WebhookDispatcher(BaseDispatcher):
    """Posts dispatch requests as JSON to an HTTP endpoint."""

    def __init__(self, url: str, timeout: int = 15):
        """Initialize webhook dispatcher.

        Args:
            url: Endpoint receiving the requests
            timeout: Per-attempt timeout in seconds
        """
        self.url = url
        self.timeout = timeout

    def dispatch(self, request: DispatchRequest) -> bool:
        """Post the request with retry logic.

        Server errors and timeouts are retried; client errors are not.
        """
        payload = request.model_dump(mode="json")

        for attempt in range(MAX_RETRIES):
            try:
                response = requests.post(self.url, json=payload, timeout=self.timeout)

                if 200 <= response.status_code < 300:
                    logger.debug(f"Webhook accepted {request.kind.value} for rule {request.rule_name}")
                    return True
                elif response.status_code >= 500:
                    # Server error - retry
                    logger.warning(
                        f"Webhook server error (attempt {attempt + 1}/{MAX_RETRIES}): "
                        f"{response.status_code}"
                    )
                    if attempt < MAX_RETRIES - 1:
                        time.sleep(RETRY_DELAY_SECONDS * (attempt + 1))
                        continue
                else:
                    # Client error - don't retry
                    logger.error(f"Webhook rejected request: {response.status_code} - {response.text}")
                    return False

            except requests.Timeout:
                logger.warning(
                    f"Webhook timeout (attempt {attempt + 1}/{MAX_RETRIES}) for rule {request.rule_name}"
                )
                if attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_DELAY_SECONDS * (attempt + 1))
                    continue
            except requests.RequestException as e:
                logger.warning(
                    f"Webhook request failed (attempt {attempt + 1}/{MAX_RETRIES}): {e}"
                )
                if attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_DELAY_SECONDS * (attempt + 1))
                    continue

        logger.error(f"Webhook dispatch failed after {MAX_RETRIES} attempts for rule {request.rule_name}")
        return False


class MultiDispatcher(BaseDispatcher):
    """Dispatcher that fans out to several channels."""

    def __init__(self, dispatchers: List[BaseDispatcher]):
        self.dispatchers = dispatchers

    def dispatch(self, request: DispatchRequest) -> bool:
        """Send the request to every channel.

        Returns:
            True if at least one channel accepted it
        """
        results = []
        for dispatcher in self.dispatchers:
            try:
                results.append(dispatcher.dispatch(request))
            except Exception as e:
                logger.error(f"Dispatcher {type(dispatcher).__name__} failed: {e}")
                results.append(False)

        return any(results)


def build_dispatcher(db: Optional[Session] = None) -> BaseDispatcher:
    """Assemble the dispatcher configured in settings.

    Args:
        db: Session for storing notifications; skipped when None

    Returns:
        A single dispatcher, or a MultiDispatcher over all configured channels
    """
    settings = get_settings()
    dispatchers: List[BaseDispatcher] = []

    if db is not None:
        dispatchers.append(DatabaseDispatcher(db))
    if settings.console_dispatch_enabled:
        dispatchers.append(console_dispatcher)
    if settings.webhook_url:
        dispatchers.append(
            WebhookDispatcher(settings.webhook_url, timeout=settings.webhook_timeout_seconds)
        )

    if not dispatchers:
        return console_dispatcher
    if len(dispatchers) == 1:
        return dispatchers[0]
    return MultiDispatcher(dispatchers)


# Singleton instance for convenience
console_dispatcher = ConsoleDispatcher()
