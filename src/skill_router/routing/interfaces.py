"""Contracts for the collaborators the router reads from and delegates to."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..core.models import (
    AgentAvailability,
    AgentProfile,
    EnqueueResult,
    ProficiencyLevel,
    QueuedTask,
    RoutingContext,
    RoutingRule,
    TaskSkillRequirements,
)


class AgentSource(ABC):
    """Source of agent profile snapshots."""

    @abstractmethod
    def get_available_agents(self, team_id: Optional[str] = None) -> List[AgentProfile]:
        """Get agents currently available, optionally scoped to a team."""
        pass

    @abstractmethod
    def get_agent_by_id(self, agent_id: str) -> Optional[AgentProfile]:
        """Get a single agent, or None if unknown."""
        pass

    @abstractmethod
    def get_agents_by_skill(
        self,
        skill_id: str,
        min_proficiency: Optional[ProficiencyLevel] = None
    ) -> List[AgentProfile]:
        """Get agents holding a skill at or above a proficiency."""
        pass

    @abstractmethod
    def update_agent_availability(self, agent_id: str, status: AgentAvailability):
        """Change an agent's availability."""
        pass


class RuleSource(ABC):
    """Source of routing rules."""

    @abstractmethod
    def get_active_rules(self) -> List[RoutingRule]:
        """Get active rules, highest priority first."""
        pass

    @abstractmethod
    def get_rule_by_id(self, rule_id: str) -> Optional[RoutingRule]:
        pass

    @abstractmethod
    def get_rules_for_conditions(self, context: RoutingContext) -> List[RoutingRule]:
        """Get active rules matching a context, highest priority first."""
        pass


class RoutingQueue(ABC):
    """Queue holding tasks no agent could take."""

    @abstractmethod
    def enqueue(
        self,
        task_id: str,
        requirements: TaskSkillRequirements,
        priority: int,
        applied_rule_id: Optional[str] = None
    ) -> EnqueueResult:
        """Queue a task. requirements are the effective ones, rule already merged."""
        pass

    @abstractmethod
    def dequeue(self, queue_id: str) -> Optional[str]:
        pass

    @abstractmethod
    def get_position(self, task_id: str) -> Optional[int]:
        """1-based position of a task in its queue, or None."""
        pass

    @abstractmethod
    def get_estimated_wait_time(self, queue_id: str) -> int:
        """Estimated wait in seconds."""
        pass

    @abstractmethod
    def get_queued_tasks(self, queue_id: str) -> List[QueuedTask]:
        pass

    @abstractmethod
    def remove_task(self, task_id: str) -> bool:
        pass

    @abstractmethod
    def get_queue_ids(self) -> List[str]:
        pass


class RoundRobinStateStore(ABC):
    """Rotation pointers shared by every router instance.

    A pointer is the id of the agent last selected for a team. Advancing it
    must go through compare_and_set so concurrent callers cannot both take
    the same "next" agent.
    """

    @abstractmethod
    def get_pointer(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def compare_and_set(self, key: str, expected: Optional[str], new: str) -> bool:
        """Set the pointer to new only if it still equals expected."""
        pass

    @abstractmethod
    def reset(self, key: Optional[str] = None):
        """Clear one pointer, or all of them."""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        pass
