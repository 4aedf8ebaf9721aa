"""In-memory collaborators for tests, the CLI and single-process deployments."""

import copy
import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional

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
from .interfaces import AgentSource, RoundRobinStateStore, RoutingQueue, RuleSource
from .rules_engine import filter_rules

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_ID = "default"
DEFAULT_AVG_HANDLE_SECONDS = 120


class InMemoryAgentSource(AgentSource):
    """Agent store backed by a dict. Returned profiles are copies."""

    def __init__(self, agents: Optional[List[AgentProfile]] = None):
        self._lock = threading.Lock()
        self._agents: Dict[str, AgentProfile] = {}
        for agent in agents or []:
            self.add_agent(agent)

    def add_agent(self, agent: AgentProfile):
        with self._lock:
            self._agents[agent.agent_id] = copy.deepcopy(agent)

    def remove_agent(self, agent_id: str) -> bool:
        with self._lock:
            return self._agents.pop(agent_id, None) is not None

    def get_all_agents(self) -> List[AgentProfile]:
        with self._lock:
            return [copy.deepcopy(a) for a in self._agents.values()]

    def get_available_agents(self, team_id: Optional[str] = None) -> List[AgentProfile]:
        with self._lock:
            return [
                copy.deepcopy(a) for a in self._agents.values()
                if a.is_available and (team_id is None or a.team_id == team_id)
            ]

    def get_agent_by_id(self, agent_id: str) -> Optional[AgentProfile]:
        with self._lock:
            agent = self._agents.get(agent_id)
            return copy.deepcopy(agent) if agent else None

    def get_agents_by_skill(
        self,
        skill_id: str,
        min_proficiency: Optional[ProficiencyLevel] = None
    ) -> List[AgentProfile]:
        min_rank = min_proficiency.rank if min_proficiency else 0
        with self._lock:
            return [
                copy.deepcopy(a) for a in self._agents.values()
                if any(
                    s.skill_id == skill_id and s.active and s.proficiency.rank >= min_rank
                    for s in a.skills
                )
            ]

    def update_agent_availability(self, agent_id: str, status: AgentAvailability):
        with self._lock:
            agent = self._agents.get(agent_id)
            if agent is None:
                raise KeyError(f"Unknown agent: {agent_id}")
            agent.availability = status
        logger.info(f"Agent {agent_id} is now {status.value}")

    def update_agent_task_count(self, agent_id: str, delta: int):
        """Adjust an agent's load. A positive delta also stamps the assignment time."""
        with self._lock:
            agent = self._agents.get(agent_id)
            if agent is None:
                raise KeyError(f"Unknown agent: {agent_id}")
            agent.current_load = max(0, agent.current_load + delta)
            if delta > 0:
                agent.last_assigned_at = datetime.now()

    def clear(self):
        with self._lock:
            self._agents.clear()


class InMemoryRuleSource(RuleSource):
    """Rule store backed by a dict."""

    def __init__(self, rules: Optional[List[RoutingRule]] = None):
        self._lock = threading.Lock()
        self._rules: Dict[str, RoutingRule] = {}
        for rule in rules or []:
            self.add_rule(rule)

    def add_rule(self, rule: RoutingRule):
        with self._lock:
            self._rules[rule.rule_id] = rule

    def remove_rule(self, rule_id: str) -> bool:
        with self._lock:
            return self._rules.pop(rule_id, None) is not None

    def get_all_rules(self) -> List[RoutingRule]:
        with self._lock:
            return list(self._rules.values())

    def get_active_rules(self) -> List[RoutingRule]:
        rules = [r for r in self.get_all_rules() if r.active]
        return sorted(rules, key=lambda r: r.priority, reverse=True)

    def get_rule_by_id(self, rule_id: str) -> Optional[RoutingRule]:
        with self._lock:
            return self._rules.get(rule_id)

    def get_rules_for_conditions(self, context: RoutingContext) -> List[RoutingRule]:
        return filter_rules(self.get_all_rules(), context)

    def clear(self):
        with self._lock:
            self._rules.clear()


class InMemoryRoutingQueue(RoutingQueue):
    """Priority queues keyed by team id.

    Higher priority first; equal priorities are served in arrival order.
    """

    def __init__(
        self,
        default_queue_id: str = DEFAULT_QUEUE_ID,
        avg_handle_seconds: int = DEFAULT_AVG_HANDLE_SECONDS
    ):
        self.default_queue_id = default_queue_id
        self.avg_handle_seconds = avg_handle_seconds
        self._lock = threading.Lock()
        self._queues: Dict[str, List[QueuedTask]] = {}
        self._task_queue: Dict[str, str] = {}

    def create_queue(self, queue_id: str):
        with self._lock:
            self._queues.setdefault(queue_id, [])

    def enqueue(
        self,
        task_id: str,
        requirements: TaskSkillRequirements,
        priority: int,
        applied_rule_id: Optional[str] = None
    ) -> EnqueueResult:
        queue_id = requirements.team_id or self.default_queue_id
        task = QueuedTask(
            task_id=task_id,
            requirements=requirements,
            priority=priority,
            queue_id=queue_id,
            applied_rule_id=applied_rule_id,
        )

        with self._lock:
            # Re-enqueueing a task moves it rather than duplicating it
            self._discard(task_id)

            entries = self._queues.setdefault(queue_id, [])
            index = len(entries)
            for i, existing in enumerate(entries):
                if existing.priority < priority:
                    index = i
                    break
            entries.insert(index, task)
            self._task_queue[task_id] = queue_id

        logger.debug(f"Enqueued task {task_id} in {queue_id} at position {index + 1}")
        return EnqueueResult(queue_id=queue_id, position=index + 1)

    def dequeue(self, queue_id: str) -> Optional[str]:
        with self._lock:
            entries = self._queues.get(queue_id)
            if not entries:
                return None
            task = entries.pop(0)
            self._task_queue.pop(task.task_id, None)
            return task.task_id

    def get_position(self, task_id: str) -> Optional[int]:
        with self._lock:
            queue_id = self._task_queue.get(task_id)
            if queue_id is None:
                return None
            for i, task in enumerate(self._queues[queue_id]):
                if task.task_id == task_id:
                    return i + 1
            return None

    def get_estimated_wait_time(self, queue_id: str) -> int:
        return self.get_queue_length(queue_id) * self.avg_handle_seconds

    def get_queue_length(self, queue_id: str) -> int:
        with self._lock:
            return len(self._queues.get(queue_id, []))

    def get_queued_tasks(self, queue_id: str) -> List[QueuedTask]:
        with self._lock:
            return list(self._queues.get(queue_id, []))

    def remove_task(self, task_id: str) -> bool:
        with self._lock:
            return self._discard(task_id)

    def get_queue_ids(self) -> List[str]:
        with self._lock:
            return list(self._queues.keys())

    def clear(self):
        with self._lock:
            self._queues.clear()
            self._task_queue.clear()

    def _discard(self, task_id: str) -> bool:
        # Caller holds the lock
        queue_id = self._task_queue.pop(task_id, None)
        if queue_id is None:
            return False
        entries = self._queues[queue_id]
        self._queues[queue_id] = [t for t in entries if t.task_id != task_id]
        return True


class InMemoryRoundRobinStore(RoundRobinStateStore):
    """Rotation pointers in a dict, with compare-and-set under a lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pointers: Dict[str, str] = {}

    def get_pointer(self, key: str) -> Optional[str]:
        with self._lock:
            return self._pointers.get(key)

    def compare_and_set(self, key: str, expected: Optional[str], new: str) -> bool:
        with self._lock:
            if self._pointers.get(key) != expected:
                return False
            self._pointers[key] = new
            return True

    def reset(self, key: Optional[str] = None):
        with self._lock:
            if key is None:
                self._pointers.clear()
            else:
                self._pointers.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._pointers.keys())
