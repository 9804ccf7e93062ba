"""Tests for change data and trigger applicability."""

from crm_rules.core.rules.changes import build_change_data, changed_fields, rule_applies
from crm_rules.core.rules.models import (
    BusinessRule,
    EntityType,
    ProcessingContext,
    RuleStatus,
    TriggerType,
)


def make_rule(**overrides):
    data = dict(
        id="rule-1",
        name="Rule",
        entity_type=EntityType.DEAL,
        trigger_type=TriggerType.EVENT_BASED,
        trigger_events=["CREATE"],
        status=RuleStatus.ACTIVE,
    )
    data.update(overrides)
    return BusinessRule(**data)


def make_context(**overrides):
    data = dict(
        entity_type=EntityType.DEAL,
        entity_id="deal-1",
        trigger_event="CREATE",
        entity_data={"stage": "WON"},
    )
    data.update(overrides)
    return ProcessingContext(**data)


class TestBuildChangeData:
    """Tests for build_change_data."""

    def test_records_changed_fields_only(self):
        changes = build_change_data(
            {"stage": "WON", "amount": 100, "name": "Acme"},
            {"stage": "PROPOSAL", "amount": 100, "name": "Acme"},
        )
        assert changes == {"original_stage": "PROPOSAL"}

    def test_new_fields_have_no_original_value(self):
        assert build_change_data({"owner": "u1"}, {}) == {"original_owner": None}

    def test_no_previous_state(self):
        assert build_change_data({"stage": "WON"}, None) is None

    def test_nothing_changed(self):
        assert build_change_data({"stage": "WON"}, {"stage": "WON"}) == {}

    def test_changed_fields(self):
        assert changed_fields({"original_stage": "A", "original_amount": 1}) == {"stage", "amount"}
        assert changed_fields(None) == set()


class TestRuleApplies:
    """Tests for rule_applies."""

    def test_event_based_rule_matches_trigger_event(self):
        assert rule_applies(make_rule(), make_context()) is True
        assert rule_applies(make_rule(), make_context(trigger_event="DELETE")) is False

    def test_inactive_rule_never_applies(self):
        assert rule_applies(make_rule(status=RuleStatus.DRAFT), make_context()) is False
        assert rule_applies(make_rule(status=RuleStatus.INACTIVE), make_context()) is False

    def test_other_entity_type(self):
        context = make_context(entity_type=EntityType.LEAD)
        assert rule_applies(make_rule(), context) is False

    def test_field_change_rule_needs_change_data(self):
        rule = make_rule(trigger_type=TriggerType.FIELD_CHANGE, trigger_fields=["stage"])
        assert rule_applies(rule, make_context(trigger_event="UPDATE")) is False

        context = make_context(trigger_event="UPDATE", change_data={"original_stage": "PROPOSAL"})
        assert rule_applies(rule, context) is True

    def test_field_change_rule_ignores_other_fields(self):
        rule = make_rule(trigger_type=TriggerType.FIELD_CHANGE, trigger_fields=["stage"])
        context = make_context(trigger_event="UPDATE", change_data={"original_amount": 10})
        assert rule_applies(rule, context) is False

    def test_event_rule_skipped_for_updates_with_change_data(self):
        rule = make_rule(trigger_events=["UPDATE"])
        context = make_context(trigger_event="UPDATE", change_data={"original_stage": "A"})
        assert rule_applies(rule, context) is False

    def test_scheduled_rules_never_apply(self):
        rule = make_rule(trigger_type=TriggerType.SCHEDULED)
        assert rule_applies(rule, make_context()) is False
