"""Skill-based task routing and queue reprocessing."""

from .router import SkillRouter
from .reprocessing import QueueReprocessor
from .rules_engine import RulesEngine, merge_requirements
from .interfaces import AgentSource, RuleSource, RoutingQueue, RoundRobinStateStore
from .memory import (
    InMemoryAgentSource,
    InMemoryRuleSource,
    InMemoryRoutingQueue,
    InMemoryRoundRobinStore,
)

__all__ = [
    "SkillRouter",
    "QueueReprocessor",
    "RulesEngine",
    "merge_requirements",
    "AgentSource",
    "RuleSource",
    "RoutingQueue",
    "RoundRobinStateStore",
    "InMemoryAgentSource",
    "InMemoryRuleSource",
    "InMemoryRoutingQueue",
    "InMemoryRoundRobinStore",
]
