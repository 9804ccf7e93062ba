"""Tests for dispatchers."""

import io
from unittest.mock import Mock, patch

import requests
from rich.console import Console

from crm_rules.core.actions.dispatcher import (
    MAX_RETRIES,
    BaseDispatcher,
    ConsoleDispatcher,
    DatabaseDispatcher,
    MultiDispatcher,
    WebhookDispatcher,
)
from crm_rules.core.actions.models import DispatchKind, DispatchRequest
from crm_rules.core.rules.models import EntityType
from crm_rules.db.models import BusinessRule, BusinessRuleNotification


def make_request(kind=DispatchKind.NOTIFICATION, **overrides):
    data = dict(
        kind=kind,
        action_type="NOTIFY_OWNER",
        rule_id="rule-1",
        rule_name="High Value Deal",
        entity_type=EntityType.DEAL,
        entity_id="deal-1",
        user_id="user-9",
        title="High Value Deal - Acme",
        message="Acme is worth 75000",
        priority=2,
    )
    data.update(overrides)
    return DispatchRequest(**data)


def response(status_code, text=""):
    mock = Mock()
    mock.status_code = status_code
    mock.text = text
    return mock


class TestConsoleDispatcher:
    """Tests for ConsoleDispatcher."""

    def test_prints_panel(self):
        buffer = io.StringIO()
        dispatcher = ConsoleDispatcher(console=Console(file=buffer, width=120))

        assert dispatcher.dispatch(make_request()) is True

        output = buffer.getvalue()
        assert "High Value Deal - Acme" in output
        assert "NOTIFICATION" in output
        assert "Acme is worth 75000" in output

    def test_task_panel(self):
        buffer = io.StringIO()
        dispatcher = ConsoleDispatcher(console=Console(file=buffer, width=120))

        assert dispatcher.dispatch(make_request(kind=DispatchKind.TASK, message=None)) is True
        assert "TASK" in buffer.getvalue()


class TestDatabaseDispatcher:
    """Tests for DatabaseDispatcher."""

    def test_stores_notification(self, db_session):
        rule = BusinessRule(
            id="rule-1",
            name="High Value Deal",
            entity_type="DEAL",
            trigger_type="EVENT_BASED",
        )
        db_session.add(rule)
        db_session.flush()

        assert DatabaseDispatcher(db_session).dispatch(make_request()) is True

        stored = db_session.query(BusinessRuleNotification).one()
        assert stored.rule_id == "rule-1"
        assert stored.entity_type == "DEAL"
        assert stored.user_id == "user-9"
        assert stored.title == "High Value Deal - Acme"
        assert stored.notification_type == "business_rule"
        assert stored.priority == 2

    def test_rejects_tasks(self, db_session):
        dispatcher = DatabaseDispatcher(db_session)
        assert dispatcher.dispatch(make_request(kind=DispatchKind.TASK)) is False
        assert db_session.query(BusinessRuleNotification).count() == 0


class TestWebhookDispatcher:
    """Tests for WebhookDispatcher retry behaviour."""

    @patch("crm_rules.core.actions.dispatcher.time.sleep")
    @patch("crm_rules.core.actions.dispatcher.requests.post")
    def test_success(self, mock_post, mock_sleep):
        mock_post.return_value = response(200)
        dispatcher = WebhookDispatcher("https://hooks.example.com/crm", timeout=5)

        assert dispatcher.dispatch(make_request()) is True

        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == "https://hooks.example.com/crm"
        assert kwargs["timeout"] == 5
        assert kwargs["json"]["kind"] == "notification"
        assert kwargs["json"]["entity_type"] == "DEAL"
        mock_sleep.assert_not_called()

    @patch("crm_rules.core.actions.dispatcher.time.sleep")
    @patch("crm_rules.core.actions.dispatcher.requests.post")
    def test_retries_server_errors(self, mock_post, mock_sleep):
        mock_post.return_value = response(503)

        assert WebhookDispatcher("https://hooks.example.com").dispatch(make_request()) is False
        assert mock_post.call_count == MAX_RETRIES
        assert mock_sleep.call_count == MAX_RETRIES - 1

    @patch("crm_rules.core.actions.dispatcher.time.sleep")
    @patch("crm_rules.core.actions.dispatcher.requests.post")
    def test_does_not_retry_client_errors(self, mock_post, mock_sleep):
        mock_post.return_value = response(400, "bad payload")

        assert WebhookDispatcher("https://hooks.example.com").dispatch(make_request()) is False
        mock_post.assert_called_once()
        mock_sleep.assert_not_called()

    @patch("crm_rules.core.actions.dispatcher.time.sleep")
    @patch("crm_rules.core.actions.dispatcher.requests.post")
    def test_retries_timeouts(self, mock_post, mock_sleep):
        mock_post.side_effect = [requests.Timeout(), response(201)]

        assert WebhookDispatcher("https://hooks.example.com").dispatch(make_request()) is True
        assert mock_post.call_count == 2
        mock_sleep.assert_called_once()


class TestMultiDispatcher:
    """Tests for MultiDispatcher."""

    def test_succeeds_if_any_child_succeeds(self):
        failing = Mock(spec=BaseDispatcher)
        failing.dispatch.side_effect = RuntimeError("down")
        working = Mock(spec=BaseDispatcher)
        working.dispatch.return_value = True

        assert MultiDispatcher([failing, working]).dispatch(make_request()) is True
        working.dispatch.assert_called_once()

    def test_fails_if_all_children_fail(self):
        rejecting = Mock(spec=BaseDispatcher)
        rejecting.dispatch.return_value = False

        assert MultiDispatcher([rejecting, rejecting]).dispatch(make_request()) is False
