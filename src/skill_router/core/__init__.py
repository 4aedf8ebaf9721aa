"""Core model, scoring and configuration for skill-based routing."""

from .models import (
    ProficiencyLevel,
    AgentAvailability,
    RoutingStrategy,
    FallbackBehavior,
    InheritanceDirection,
    RoutingOutcome,
    RoutingValidationError,
    AgentSkill,
    AgentProfile,
    SkillRequirement,
    TaskSkillRequirements,
    RoutingRule,
    RoutingContext,
    AgentMatchScore,
    MatchResult,
    RoutingDecision,
)
from .hierarchy import SkillHierarchy
from .scorer import AgentScorer
from .config import RoutingConfig, RoutingConfigManager
from .skills import STANDARD_SKILLS, get_skill, standard_hierarchy

__all__ = [
    "ProficiencyLevel",
    "AgentAvailability",
    "RoutingStrategy",
    "FallbackBehavior",
    "InheritanceDirection",
    "RoutingOutcome",
    "RoutingValidationError",
    "AgentSkill",
    "AgentProfile",
    "SkillRequirement",
    "TaskSkillRequirements",
    "RoutingRule",
    "RoutingContext",
    "AgentMatchScore",
    "MatchResult",
    "RoutingDecision",
    "SkillHierarchy",
    "AgentScorer",
    "RoutingConfig",
    "RoutingConfigManager",
    "STANDARD_SKILLS",
    "get_skill",
    "standard_hierarchy",
]
