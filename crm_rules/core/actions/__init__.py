"""Action resolution and dispatch."""

from .models import ActionDecision, ActionOutcome, DispatchKind, DispatchRequest
from .resolver import (
    build_dispatch_request,
    build_notification_title,
    render_message,
    resolve_action,
    resolve_owner,
)
from .dispatcher import (
    BaseDispatcher,
    ConsoleDispatcher,
    DatabaseDispatcher,
    MultiDispatcher,
    WebhookDispatcher,
    build_dispatcher,
    console_dispatcher,
)

__all__ = [
    "ActionDecision",
    "ActionOutcome",
    "DispatchKind",
    "DispatchRequest",
    "build_dispatch_request",
    "build_notification_title",
    "render_message",
    "resolve_action",
    "resolve_owner",
    "BaseDispatcher",
    "ConsoleDispatcher",
    "DatabaseDispatcher",
    "MultiDispatcher",
    "WebhookDispatcher",
    "build_dispatcher",
    "console_dispatcher",
]
