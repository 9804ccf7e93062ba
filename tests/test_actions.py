"""Tests for action resolution, titles and dispatch requests."""

import pytest

from crm_rules.core.actions.models import DispatchKind
from crm_rules.core.actions.resolver import (
    build_dispatch_request,
    build_notification_title,
    render_message,
    resolve_action,
    resolve_owner,
)
from crm_rules.core.rules.models import (
    BusinessRule,
    EntityType,
    ProcessingContext,
    RuleAction,
    RuleStatus,
)


def make_context(entity_data, entity_type=EntityType.DEAL):
    return ProcessingContext(
        entity_type=entity_type,
        entity_id="deal-1",
        trigger_event="UPDATE",
        entity_data=entity_data,
    )


def make_rule():
    return BusinessRule(
        id="rule-1",
        name="High Value Deal",
        entity_type=EntityType.DEAL,
        status=RuleStatus.ACTIVE,
        trigger_events=["UPDATE"],
    )


class TestResolveAction:
    """Tests for resolve_action."""

    def test_notify_owner_without_owner(self):
        decision = resolve_action(RuleAction(type="NOTIFY_OWNER"), {"name": "Test Deal"})
        assert decision.can_execute is False
        assert decision.reason == "No owner found for entity"

    def test_notify_owner_with_assignee(self):
        decision = resolve_action(
            RuleAction(type="NOTIFY_OWNER"), {"assigned_to_user_id": "user-456"}
        )
        assert decision.can_execute is True
        assert decision.reason is None

    def test_notify_user_needs_target(self):
        assert resolve_action(RuleAction(type="NOTIFY_USER", target="user-1"), {}).can_execute is True

        decision = resolve_action(RuleAction(type="NOTIFY_USER"), {})
        assert decision.can_execute is False
        assert decision.reason == "No target user specified"

    @pytest.mark.parametrize("action_type", ["CREATE_TASK", "CREATE_ACTIVITY"])
    def test_tasks_and_activities_always_execute(self, action_type):
        assert resolve_action(RuleAction(type=action_type), None).can_execute is True

    def test_send_email_is_not_dispatched(self):
        decision = resolve_action(RuleAction(type="SEND_EMAIL", target="a@b.com"), {})
        assert decision.can_execute is False
        assert decision.reason == "Unknown action type: SEND_EMAIL"

    def test_unknown_action_type(self):
        action = RuleAction(type="SEND_SMS")
        assert action.type == "SEND_SMS"

        decision = resolve_action(action, {})
        assert decision.can_execute is False
        assert decision.reason == "Unknown action type: SEND_SMS"


class TestResolveOwner:
    """Owner resolution order: assignee, user, creator."""

    def test_assignee_wins(self):
        data = {"user_id": "u1", "assigned_to_user_id": "u2", "created_by_user_id": "u3"}
        assert resolve_owner(data) == "u2"

    def test_falls_back_past_empty_values(self):
        data = {"assigned_to_user_id": "", "user_id": None, "created_by_user_id": "u3"}
        assert resolve_owner(data) == "u3"

    def test_no_owner(self):
        assert resolve_owner({}) is None
        assert resolve_owner(None) is None


class TestBuildNotificationTitle:
    """Tests for build_notification_title."""

    def test_template_and_name(self):
        title = build_notification_title(
            RuleAction(template="High Value Alert"), {"name": "Enterprise Software Deal"}
        )
        assert title == "High Value Alert - Enterprise Software Deal"

    def test_defaults(self):
        title = build_notification_title(RuleAction(), {"status": "ACTIVE"})
        assert title == "Business Rule Notification - Entity"

    def test_falls_back_to_title_then_contact_name(self):
        assert build_notification_title(RuleAction(template="T"), {"title": "Call"}) == "T - Call"
        assert build_notification_title(
            RuleAction(template="T"), {"name": "", "contact_name": "Jane"}
        ) == "T - Jane"

    def test_custom_default_template(self):
        assert build_notification_title(RuleAction(), {"name": "X"}, "Heads up") == "Heads up - X"


class TestRenderMessage:
    """Tests for render_message."""

    def test_fills_plain_and_prefixed_placeholders(self):
        message = render_message(
            "{{name}} is worth {{deal_amount}}",
            "DEAL",
            {"name": "Acme", "amount": 50000},
        )
        assert message == "Acme is worth 50000"

    def test_unknown_placeholders_are_kept(self):
        assert render_message("Hi {{nickname}}", "DEAL", {"name": "Acme"}) == "Hi {{nickname}}"

    def test_null_values_render_empty(self):
        assert render_message("Owner: {{owner}}", "LEAD", {"owner": None}) == "Owner: "

    def test_empty_message(self):
        assert render_message(None, "DEAL", {}) is None
        assert render_message("", "DEAL", {}) == ""


class TestBuildDispatchRequest:
    """Tests for build_dispatch_request."""

    def test_notify_owner(self):
        action = RuleAction(type="NOTIFY_OWNER", template="High Value Deal", message="{{name}} closed")
        context = make_context({"name": "Acme", "user_id": "user-7"})

        request = build_dispatch_request(action, make_rule(), context)

        assert request.kind == DispatchKind.NOTIFICATION
        assert request.action_type == "NOTIFY_OWNER"
        assert request.user_id == "user-7"
        assert request.title == "High Value Deal - Acme"
        assert request.message == "Acme closed"
        assert request.notification_type == "High Value Deal"
        assert request.priority == 1
        assert request.rule_id == "rule-1"
        assert request.entity_id == "deal-1"

    def test_notify_user_uses_target(self):
        action = RuleAction(type="NOTIFY_USER", target="user-1", priority=3)
        request = build_dispatch_request(action, make_rule(), make_context({"user_id": "user-7"}))

        assert request.user_id == "user-1"
        assert request.priority == 3
        assert request.notification_type == "business_rule"

    def test_task_defaults_to_owner(self):
        action = RuleAction(type="CREATE_TASK", template="Follow up", metadata={"due_in_days": 2})
        request = build_dispatch_request(
            action, make_rule(), make_context({"name": "Acme", "assigned_to_user_id": "user-2"})
        )

        assert request.kind == DispatchKind.TASK
        assert request.user_id == "user-2"
        assert request.title == "Follow up - Acme"
        assert request.notification_type == "business_rule"
        assert request.metadata == {"due_in_days": 2}

    def test_activity(self):
        request = build_dispatch_request(
            RuleAction(type="CREATE_ACTIVITY"), make_rule(), make_context({})
        )
        assert request.kind == DispatchKind.ACTIVITY
        assert request.user_id is None
        assert request.title == "Business Rule Notification - Entity"

    def test_rejects_non_dispatchable_types(self):
        with pytest.raises(ValueError, match="SEND_EMAIL"):
            build_dispatch_request(RuleAction(type="SEND_EMAIL"), make_rule(), make_context({}))
