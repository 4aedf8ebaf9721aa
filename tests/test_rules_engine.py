"""Tests for routing rule evaluation."""

from datetime import datetime

import pytest

from skill_router.core.models import (
    Channel,
    ProficiencyLevel,
    RoutingContext,
    RoutingRule,
    RuleConditions,
    SkillRequirement,
    TaskSkillRequirements,
    TimeWindow,
    UrgencyLevel,
)
from skill_router.routing.memory import InMemoryRuleSource
from skill_router.routing.rules_engine import (
    RulesEngine,
    filter_rules,
    merge_requirements,
    rule_matches,
)


@pytest.fixture
def rule_source():
    """Rule source with VIP, emergency and catch-all rules."""
    return InMemoryRuleSource([
        RoutingRule("catch-all", "Catch all", priority=0),
        RoutingRule("vip", "VIP patients", priority=50, conditions=RuleConditions(is_vip=True)),
        RoutingRule(
            "emergency",
            "Emergencies",
            priority=100,
            conditions=RuleConditions(urgency_levels=[UrgencyLevel.CRITICAL]),
        ),
        RoutingRule("disabled", "Disabled", priority=999, active=False),
    ])


class TestRuleMatching:
    """Tests for rule_matches."""

    def test_empty_conditions_match_everything(self):
        """A rule without conditions is a wildcard."""
        assert rule_matches(RoutingRule("r", "R"), RoutingContext())

    def test_procedure_type_ignores_case(self):
        """Procedure types compare case-insensitively."""
        rule = RoutingRule("r", "R", conditions=RuleConditions(procedure_types=["Implants"]))

        assert rule_matches(rule, RoutingContext(procedure_type="implants"))
        assert not rule_matches(rule, RoutingContext(procedure_type="whitening"))

    def test_channel_condition(self):
        """Channel lists must contain the context channel."""
        rule = RoutingRule("r", "R", conditions=RuleConditions(channels=[Channel.VOICE]))

        assert rule_matches(rule, RoutingContext(channel=Channel.VOICE))
        assert not rule_matches(rule, RoutingContext(channel=Channel.WHATSAPP))

    def test_boolean_condition(self):
        """Flag conditions require equality."""
        rule = RoutingRule("r", "R", conditions=RuleConditions(is_existing_patient=False))

        assert rule_matches(rule, RoutingContext(is_existing_patient=False))
        assert not rule_matches(rule, RoutingContext(is_existing_patient=True))

    def test_missing_context_value_is_wildcard(self):
        """A condition the context says nothing about does not disqualify."""
        rule = RoutingRule("r", "R", conditions=RuleConditions(is_vip=True))
        assert rule_matches(rule, RoutingContext())

    def test_time_window_uses_context_timestamp(self):
        """Business-hours rules evaluate against the context time."""
        rule = RoutingRule(
            "r", "R",
            conditions=RuleConditions(time_window=TimeWindow(start_hour=9, end_hour=17, days_of_week=[0, 1, 2, 3, 4])),
        )
        monday_morning = datetime(2024, 1, 1, 10, 0)
        monday_night = datetime(2024, 1, 1, 20, 0)
        saturday_morning = datetime(2024, 1, 6, 10, 0)

        assert rule_matches(rule, RoutingContext(timestamp=monday_morning))
        assert not rule_matches(rule, RoutingContext(timestamp=monday_night))
        assert not rule_matches(rule, RoutingContext(timestamp=saturday_morning))

    def test_time_window_falls_back_to_now(self):
        """Without a context timestamp the supplied clock is used."""
        rule = RoutingRule("r", "R", conditions=RuleConditions(time_window=TimeWindow(9, 17)))

        assert rule_matches(rule, RoutingContext(), now=datetime(2024, 1, 1, 12, 0))
        assert not rule_matches(rule, RoutingContext(), now=datetime(2024, 1, 1, 3, 0))


class TestRulesEngine:
    """Tests for RulesEngine."""

    def test_highest_priority_wins(self, rule_source):
        """The emergency rule outranks VIP when both match."""
        engine = RulesEngine(rule_source)
        context = RoutingContext(is_vip=True, urgency_level=UrgencyLevel.CRITICAL)

        assert engine.find_applicable_rule(context).rule_id == "emergency"

    def test_ordering(self, rule_source):
        """Matching rules come back highest priority first."""
        engine = RulesEngine(rule_source)
        context = RoutingContext(is_vip=True, urgency_level=UrgencyLevel.LOW)

        ids = [r.rule_id for r in engine.get_rules_for_conditions(context)]
        assert ids == ["vip", "catch-all"]

    def test_inactive_rules_skipped(self, rule_source):
        """Inactive rules never apply."""
        engine = RulesEngine(rule_source)
        ids = [r.rule_id for r in engine.get_rules_for_conditions(RoutingContext())]
        assert "disabled" not in ids

    def test_ties_keep_source_order(self):
        """Equal priorities keep their original order."""
        rules = [RoutingRule("first", "First", priority=5), RoutingRule("second", "Second", priority=5)]
        assert [r.rule_id for r in filter_rules(rules, RoutingContext())] == ["first", "second"]

    def test_no_source(self):
        """An engine without rules finds nothing."""
        assert RulesEngine().find_applicable_rule(RoutingContext()) is None

    def test_rule_source_filter(self, rule_source):
        """The in-memory source applies the same matching."""
        rules = rule_source.get_rules_for_conditions(RoutingContext(is_vip=False))
        assert [r.rule_id for r in rules] == ["emergency", "catch-all"]


class TestMergeRequirements:
    """Tests for merge_requirements."""

    def test_no_override(self):
        """Without rule requirements the caller's are returned unchanged."""
        incoming = TaskSkillRequirements(required_skills=[SkillRequirement("implants")])
        assert merge_requirements(incoming, None) is incoming

    def test_union_and_stricter_wins(self):
        """Skills are unioned; the stricter proficiency is kept."""
        incoming = TaskSkillRequirements(
            required_skills=[SkillRequirement("implants", ProficiencyLevel.INTERMEDIATE, weight=40)],
            prefer_agent_ids=["a1"],
            team_id="clinic-a",
            priority=30,
        )
        override = TaskSkillRequirements(
            required_skills=[
                SkillRequirement("implants", ProficiencyLevel.EXPERT, weight=20),
                SkillRequirement("vip"),
            ],
            prefer_agent_ids=["a2", "a1"],
            team_id="vip-desk",
            priority=90,
        )

        merged = merge_requirements(incoming, override)

        by_id = {r.skill_id: r for r in merged.required_skills}
        assert set(by_id) == {"implants", "vip"}
        assert by_id["implants"].minimum_proficiency == ProficiencyLevel.EXPERT
        assert by_id["implants"].weight == 40
        assert merged.prefer_agent_ids == ["a1", "a2"]
        assert merged.team_id == "clinic-a"
        assert merged.priority == 90

    def test_merge_does_not_mutate_inputs(self):
        """Merging copies requirement entries."""
        override = TaskSkillRequirements(required_skills=[SkillRequirement("implants", ProficiencyLevel.EXPERT)])
        incoming = TaskSkillRequirements(required_skills=[SkillRequirement("implants", ProficiencyLevel.NOVICE)])

        merge_requirements(incoming, override)

        assert incoming.required_skills[0].minimum_proficiency == ProficiencyLevel.NOVICE
        assert override.required_skills[0].minimum_proficiency == ProficiencyLevel.EXPERT
