"""Build routing objects from plain dicts and JSON scenario files.

A scenario file looks like::

    {
      "hierarchy": {"all-on-x": ["implants"]},
      "config": {"default_strategy": "round_robin"},
      "agents": [{"agent_id": "a1", "name": "Ana", "skills": [{"skill_id": "all-on-x", "proficiency": "expert"}]}],
      "rules": [{"rule_id": "vip", "name": "VIP", "priority": 10, "conditions": {"is_vip": true}}],
      "task": {"requirements": {"required_skills": [{"skill_id": "implants"}]}, "context": {"task_id": "t1"}}
    }

Every section is optional.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.models import (
    AgentAvailability,
    AgentProfile,
    AgentSkill,
    Channel,
    FallbackBehavior,
    LeadClassification,
    PerformanceStats,
    ProficiencyLevel,
    RoutingContext,
    RoutingDecision,
    RoutingRule,
    RoutingStrategy,
    RuleConditions,
    RuleRouting,
    SkillRequirement,
    TaskSkillRequirements,
    TimeWindow,
    UrgencyLevel,
)


@dataclass
class Scenario:
    """Everything needed to dry-run one routing call."""

    agents: List[AgentProfile] = field(default_factory=list)
    rules: List[RoutingRule] = field(default_factory=list)
    hierarchy: Dict[str, List[str]] = field(default_factory=dict)
    requirements: TaskSkillRequirements = field(default_factory=TaskSkillRequirements)
    context: RoutingContext = field(default_factory=RoutingContext)
    config: Dict[str, Any] = field(default_factory=dict)


def _enum(enum_type, value):
    if value is None or isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_type)
        raise ValueError(f"Invalid {enum_type.__name__} '{value}' (expected one of: {allowed})")


def _enum_list(enum_type, values):
    if values is None:
        return None
    return [_enum(enum_type, v) for v in values]


def _datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def skill_requirement_from_dict(data: Dict[str, Any]) -> SkillRequirement:
    return SkillRequirement(
        skill_id=data["skill_id"],
        minimum_proficiency=_enum(ProficiencyLevel, data.get("minimum_proficiency", "intermediate")),
        is_required=data.get("is_required", True),
        weight=float(data.get("weight", 50.0)),
    )


def requirements_from_dict(data: Optional[Dict[str, Any]]) -> TaskSkillRequirements:
    data = data or {}
    return TaskSkillRequirements(
        required_skills=[skill_requirement_from_dict(r) for r in data.get("required_skills", [])],
        preferred_skills=[skill_requirement_from_dict(r) for r in data.get("preferred_skills", [])],
        team_id=data.get("team_id"),
        exclude_agent_ids=list(data.get("exclude_agent_ids", [])),
        prefer_agent_ids=list(data.get("prefer_agent_ids", [])),
        preferred_languages=list(data.get("preferred_languages", [])),
        required_language=data.get("required_language"),
        priority=int(data.get("priority", 50)),
    )


def agent_from_dict(data: Dict[str, Any]) -> AgentProfile:
    skills = [
        AgentSkill(
            skill_id=s["skill_id"],
            proficiency=_enum(ProficiencyLevel, s.get("proficiency", "intermediate")),
            certified=s.get("certified", True),
            active=s.get("active", True),
        )
        for s in data.get("skills", [])
    ]
    return AgentProfile(
        agent_id=data["agent_id"],
        name=data.get("name", data["agent_id"]),
        team_id=data.get("team_id"),
        skills=skills,
        availability=_enum(AgentAvailability, data.get("availability", "available")),
        current_load=int(data.get("current_load", 0)),
        max_concurrent_tasks=int(data.get("max_concurrent_tasks", 1)),
        last_assigned_at=_datetime(data.get("last_assigned_at")),
        performance=PerformanceStats(**data.get("performance", {})),
        primary_languages=list(data.get("primary_languages", ["en"])),
        secondary_languages=list(data.get("secondary_languages", [])),
        preferred_channels=_enum_list(Channel, data.get("preferred_channels", [])),
    )


def rule_from_dict(data: Dict[str, Any]) -> RoutingRule:
    cond = data.get("conditions", {})
    window = cond.get("time_window")
    conditions = RuleConditions(
        procedure_types=cond.get("procedure_types"),
        urgency_levels=_enum_list(UrgencyLevel, cond.get("urgency_levels")),
        channels=_enum_list(Channel, cond.get("channels")),
        is_vip=cond.get("is_vip"),
        is_existing_patient=cond.get("is_existing_patient"),
        lead_classifications=_enum_list(LeadClassification, cond.get("lead_classifications")),
        time_window=TimeWindow(**window) if window else None,
    )

    route = data.get("routing", {})
    routing = RuleRouting(
        strategy=_enum(RoutingStrategy, route.get("strategy")),
        skill_requirements=requirements_from_dict(route["skill_requirements"])
        if route.get("skill_requirements") else None,
        fallback_behavior=_enum(FallbackBehavior, route.get("fallback_behavior")),
    )

    return RoutingRule(
        rule_id=data["rule_id"],
        name=data.get("name", data["rule_id"]),
        priority=int(data.get("priority", 0)),
        conditions=conditions,
        routing=routing,
        active=data.get("active", True),
    )


def context_from_dict(data: Optional[Dict[str, Any]]) -> RoutingContext:
    data = data or {}
    return RoutingContext(
        task_id=data.get("task_id"),
        procedure_type=data.get("procedure_type"),
        channel=_enum(Channel, data.get("channel")),
        urgency_level=_enum(UrgencyLevel, data.get("urgency_level")),
        is_vip=data.get("is_vip"),
        is_existing_patient=data.get("is_existing_patient"),
        lead_classification=_enum(LeadClassification, data.get("lead_classification")),
        language=data.get("language"),
        timestamp=_datetime(data.get("timestamp")),
    )


def scenario_from_dict(data: Dict[str, Any]) -> Scenario:
    task = data.get("task", {})
    return Scenario(
        agents=[agent_from_dict(a) for a in data.get("agents", [])],
        rules=[rule_from_dict(r) for r in data.get("rules", [])],
        hierarchy={k: list(v) for k, v in data.get("hierarchy", {}).items()},
        requirements=requirements_from_dict(task.get("requirements")),
        context=context_from_dict(task.get("context")),
        config=dict(data.get("config", {})),
    )


def load_scenario(path: Path) -> Scenario:
    """Read a JSON scenario file."""
    with open(path, 'r') as f:
        return scenario_from_dict(json.load(f))


def to_jsonable(value: Any) -> Any:
    """Convert dataclass output to JSON-compatible values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def decision_to_dict(decision: RoutingDecision) -> Dict[str, Any]:
    return to_jsonable(asdict(decision))
