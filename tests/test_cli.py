"""Tests for CLI commands that fail before touching the database."""

import json
from unittest.mock import patch

from typer.testing import CliRunner

from crm_rules.cli.process import app as process_app
from crm_rules.cli.rules import app as rules_app

runner = CliRunner()


class TestProcessRun:
    """Tests for `process run`."""

    @patch("crm_rules.cli.process.get_db")
    def test_incomplete_context_exits_with_errors(self, mock_get_db, tmp_path):
        path = tmp_path / "context.json"
        path.write_text(json.dumps({"entity_data": {"name": "Acme"}}))

        result = runner.invoke(process_app, ["run", str(path)])

        assert result.exit_code == 1
        assert "Invalid processing context" in result.output
        assert "Entity type is required" in result.output
        assert "Entity ID is required" in result.output
        assert "Trigger event is required" in result.output
        mock_get_db.assert_not_called()


class TestRulesValidate:
    """Tests for `rules validate`."""

    def test_bad_tags_are_listed(self, tmp_path):
        path = tmp_path / "rule.json"
        path.write_text(json.dumps({
            "name": "Stage In",
            "entity_type": "DEAL",
            "trigger_type": "EVENT_BASED",
            "trigger_events": ["UPDATE"],
            "conditions": [{"field": "stage", "operator": "IN", "value": "A", "logical_operator": "or"}],
            "actions": [{"type": "NOTIFY_OWNER"}],
        }))

        result = runner.invoke(rules_app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Invalid logical operator" in result.output
