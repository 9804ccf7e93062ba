"""Rule processor: evaluates rules against a context and dispatches actions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from crm_rules.config import get_settings
from crm_rules.core.actions.dispatcher import BaseDispatcher, console_dispatcher
from crm_rules.core.actions.models import ActionOutcome
from crm_rules.core.actions.resolver import build_dispatch_request, resolve_action
from .evaluators import evaluate_conditions
from .models import BusinessRule, ProcessingContext, tag_name
from .results import ExecutionResult, ProcessingSummary
from .stats import StatisticsCollector
from .validation import InvalidContextError, validate_context

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RuleProcessor:
    """Processor for evaluating business rules against one entity event."""

    def __init__(
        self,
        dispatcher: Optional[BaseDispatcher] = None,
        stats: Optional[StatisticsCollector] = None,
        default_title: Optional[str] = None,
        default_notification_type: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the rule processor.

        Args:
            dispatcher: Dispatcher for executable actions (defaults to console)
            stats: Statistics collector; nothing is recorded when None
            default_title: Title template for actions without one
            default_notification_type: Notification type for actions without a template
            clock: Source of the evaluation time
        """
        settings = get_settings()
        self.dispatcher = dispatcher or console_dispatcher
        self.stats = stats
        self.default_title = default_title or settings.default_notification_title
        self.default_notification_type = (
            default_notification_type or settings.default_notification_type
        )
        self.clock = clock

    def process(
        self,
        context: ProcessingContext,
        rules: Sequence[BusinessRule],
    ) -> List[ExecutionResult]:
        """Evaluate every applicable rule and dispatch the actions of matches.

        Only active rules for the context's entity type are evaluated; they
        are taken in the order given. Every evaluated rule yields one result,
        matched or not.

        Args:
            context: Entity event to evaluate
            rules: Candidate rules

        Returns:
            One execution result per evaluated rule

        Raises:
            InvalidContextError: If the context is missing required members
        """
        errors = validate_context(context)
        if errors:
            raise InvalidContextError(errors)

        applicable = [
            rule for rule in rules
            if rule.is_active and rule.entity_type == context.entity_type
        ]
        logger.info(
            f"Evaluating {len(applicable)} rule(s) for "
            f"{context.entity_type.value} {context.entity_id} ({context.trigger_event})"
        )

        now = self.clock()
        results: List[ExecutionResult] = []

        for rule in applicable:
            result = self.execute_rule(rule, context, now=now)
            results.append(result)

            if self.stats is not None and not context.test_mode:
                self.stats.record(rule, context, result)

        summary = ProcessingSummary.from_results(results)
        logger.info(
            f"Processing complete: {summary.rules_matched}/{summary.rules_processed} matched, "
            f"{summary.notifications_created} notification(s), {summary.tasks_created} task(s), "
            f"{summary.activities_created} activity(ies)"
        )
        if summary.errors:
            logger.debug(f"Action notes: {summary.errors}")
        return results

    def execute_rule(
        self,
        rule: BusinessRule,
        context: ProcessingContext,
        now: Optional[datetime] = None,
    ) -> ExecutionResult:
        """Evaluate one rule and, if it matches, run its actions in order."""
        matched = evaluate_conditions(
            rule.conditions,
            context.entity_data,
            context.change_data,
            now=now or self.clock(),
        )
        result = ExecutionResult(rule_id=rule.id, rule_name=rule.name, matched=matched)

        if not matched:
            logger.debug(f"Rule '{rule.name}' did not match")
            return result

        logger.debug(f"Rule '{rule.name}' matched; running {len(rule.actions)} action(s)")
        for action in rule.actions:
            decision = resolve_action(action, context.entity_data)
            outcome = ActionOutcome(
                action=action,
                can_execute=decision.can_execute,
                reason=decision.reason,
            )
            result.actions.append(outcome)

            if not decision.can_execute:
                result.notes.append(f"Action {tag_name(action.type)}: {decision.reason}")
                continue

            try:
                request = build_dispatch_request(
                    action,
                    rule,
                    context,
                    default_title=self.default_title,
                    default_notification_type=self.default_notification_type,
                )
                outcome.request = request
                outcome.dispatched = bool(self.dispatcher.dispatch(request))
            except Exception as e:
                logger.error(f"Action {tag_name(action.type)} of rule '{rule.name}' failed: {e}")
                result.notes.append(f"Action {tag_name(action.type)}: {e}")
                continue

            if outcome.dispatched:
                result.record_dispatch(request.kind)

        return result
