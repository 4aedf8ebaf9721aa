"""Routing rule evaluation."""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..core.models import (
    RoutingContext,
    RoutingRule,
    SkillRequirement,
    TaskSkillRequirements,
)
from .interfaces import RuleSource

logger = logging.getLogger(__name__)


def _member(allowed: Sequence[Any], value: Any) -> bool:
    return value in allowed


def _member_ignore_case(allowed: Sequence[str], value: str) -> bool:
    return value.lower() in [a.lower() for a in allowed]


def _equals(expected: Any, value: Any) -> bool:
    return expected == value


# (condition field, context field, comparator). A condition left as None is a
# wildcard, and so is a context field the caller did not supply.
CONDITION_MATCHERS: List[Tuple[str, str, Callable[[Any, Any], bool]]] = [
    ("procedure_types", "procedure_type", _member_ignore_case),
    ("urgency_levels", "urgency_level", _member),
    ("channels", "channel", _member),
    ("is_vip", "is_vip", _equals),
    ("is_existing_patient", "is_existing_patient", _equals),
    ("lead_classifications", "lead_classification", _member),
]


def rule_matches(rule: RoutingRule, context: RoutingContext, now: Optional[datetime] = None) -> bool:
    """Check if a context satisfies every condition the rule specifies."""
    conditions = rule.conditions

    for condition_field, context_field, compare in CONDITION_MATCHERS:
        expected = getattr(conditions, condition_field)
        actual = getattr(context, context_field)
        if expected is None or actual is None:
            continue
        if not compare(expected, actual):
            return False

    if conditions.time_window is not None:
        moment = context.timestamp or now or datetime.now()
        if not conditions.time_window.contains(moment):
            return False

    return True


def filter_rules(rules: Sequence[RoutingRule], context: RoutingContext) -> List[RoutingRule]:
    """Active rules matching the context, highest priority first."""
    matching = [r for r in rules if r.active and rule_matches(r, context)]
    # sorted() is stable, so equal priorities keep the source order
    return sorted(matching, key=lambda r: r.priority, reverse=True)


def _merge_skills(base: List[SkillRequirement], extra: List[SkillRequirement]) -> List[SkillRequirement]:
    merged: Dict[str, SkillRequirement] = {}
    for req in list(base) + list(extra):
        existing = merged.get(req.skill_id)
        if existing is None:
            merged[req.skill_id] = replace(req)
            continue
        if req.minimum_proficiency.rank > existing.minimum_proficiency.rank:
            existing.minimum_proficiency = req.minimum_proficiency
        existing.is_required = existing.is_required or req.is_required
        existing.weight = max(existing.weight, req.weight)
    return list(merged.values())


def _union(first: List[str], second: List[str]) -> List[str]:
    result = list(first)
    for item in second:
        if item not in result:
            result.append(item)
    return result


def merge_requirements(
    incoming: TaskSkillRequirements,
    override: Optional[TaskSkillRequirements]
) -> TaskSkillRequirements:
    """Union a rule's skill requirements into the caller's."""
    if override is None:
        return incoming

    return TaskSkillRequirements(
        required_skills=_merge_skills(incoming.required_skills, override.required_skills),
        preferred_skills=_merge_skills(incoming.preferred_skills, override.preferred_skills),
        team_id=incoming.team_id or override.team_id,
        exclude_agent_ids=_union(incoming.exclude_agent_ids, override.exclude_agent_ids),
        prefer_agent_ids=_union(incoming.prefer_agent_ids, override.prefer_agent_ids),
        preferred_languages=_union(incoming.preferred_languages, override.preferred_languages),
        required_language=incoming.required_language or override.required_language,
        priority=max(incoming.priority, override.priority),
    )


class RulesEngine:
    """Find the routing rule that applies to a context."""

    def __init__(self, rule_source: Optional[RuleSource] = None):
        self.rule_source = rule_source

    def get_rules_for_conditions(self, context: RoutingContext) -> List[RoutingRule]:
        """Get active rules matching the context, highest priority first."""
        if self.rule_source is None:
            return []
        return filter_rules(self.rule_source.get_active_rules(), context)

    def get_rule(self, rule_id: Optional[str]) -> Optional[RoutingRule]:
        """Look up an active rule by id."""
        if self.rule_source is None or not rule_id:
            return None
        rule = self.rule_source.get_rule_by_id(rule_id)
        if rule is None or not rule.active:
            return None
        return rule

    def find_applicable_rule(self, context: RoutingContext) -> Optional[RoutingRule]:
        """Get the highest-priority matching rule, if any."""
        matching = self.get_rules_for_conditions(context)
        if not matching:
            return None

        rule = matching[0]
        if len(matching) > 1:
            logger.debug(
                f"Rule {rule.rule_id} (priority {rule.priority}) wins over "
                f"{[r.rule_id for r in matching[1:]]}"
            )
        return rule
