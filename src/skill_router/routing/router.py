"""Skill-based router: rule lookup, candidate scoring, strategy, fallback."""

import copy
import logging
import threading
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..core.config import RoutingConfig
from ..core.hierarchy import SkillHierarchy
from ..core.models import (
    AgentMatchScore,
    FallbackBehavior,
    MatchResult,
    QueuedTask,
    RoutingContext,
    RoutingDecision,
    RoutingOutcome,
    RoutingRule,
    RoutingStrategy,
    TaskSkillRequirements,
)
from ..core.scorer import AgentScorer
from .interfaces import AgentSource, RoundRobinStateStore, RoutingQueue, RuleSource
from .memory import InMemoryRoundRobinStore
from .reprocessing import QueueReprocessor
from .rules_engine import RulesEngine, merge_requirements
from .strategies import STRATEGY_SELECTORS, Selection, uses_rotation

logger = logging.getLogger(__name__)


class SkillRouter:
    """Assign tasks to qualified agents.

    The router only reads agent state. Recording the assignment (load,
    last-assigned time) is left to the caller or the agent store.
    """

    def __init__(
        self,
        agent_source: AgentSource,
        rule_source: Optional[RuleSource] = None,
        queue: Optional[RoutingQueue] = None,
        config: Optional[Union[RoutingConfig, Dict[str, Any]]] = None,
        hierarchy: Optional[SkillHierarchy] = None,
        round_robin_store: Optional[RoundRobinStateStore] = None,
    ):
        self.agent_source = agent_source
        self.rules_engine = RulesEngine(rule_source)
        self.queue = queue
        if isinstance(config, dict):
            config = RoutingConfig.from_dict(config)
        self.config = config or RoutingConfig()
        self.hierarchy = hierarchy or SkillHierarchy()
        self.round_robin = round_robin_store or InMemoryRoundRobinStore()
        self.reprocessor = QueueReprocessor(self)

        self._config_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._outcome_counts: Dict[str, int] = {o.value: 0 for o in RoutingOutcome}

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def route(
        self,
        requirements: TaskSkillRequirements,
        context: Optional[RoutingContext] = None
    ) -> RoutingDecision:
        """Route a task to the best qualified agent, or queue/reject it."""
        return self._route(requirements, context or RoutingContext())

    def _route(
        self,
        requirements: TaskSkillRequirements,
        context: RoutingContext,
        queued_task: Optional[QueuedTask] = None
    ) -> RoutingDecision:
        """Single routing pass.

        When queued_task is given the task is already waiting in a queue: a
        failed pass leaves it there instead of enqueueing it again. Its stored
        requirements already carry the rule merged at enqueue time, so the
        rule is reused by id rather than looked up again.
        """
        start = time.perf_counter()
        decision_id = str(uuid.uuid4())
        config = self.config
        requirements.validate(require_skills=config.features.require_skill_requirements)

        task_label = context.task_id or decision_id
        logger.info(f"Routing task {task_label} (decision {decision_id})")

        try:
            effective = requirements
            strategy = config.default_strategy
            fallback = config.default_fallback

            if queued_task is not None:
                rule = self.rules_engine.get_rule(queued_task.applied_rule_id)
            else:
                rule = self.rules_engine.find_applicable_rule(context)
                if rule is not None:
                    effective = merge_requirements(requirements, rule.routing.skill_requirements)

            if rule is not None:
                strategy = rule.routing.strategy or strategy
                fallback = rule.routing.fallback_behavior or fallback
                logger.info(f"Applying routing rule '{rule.name}' ({rule.rule_id}) to task {task_label}")

            scorer = AgentScorer(self.hierarchy, config)
            scored = [scorer.evaluate(agent, effective) for agent in self._candidate_agents(effective)]
            qualified = [s for s in scored if scorer.is_qualified(s)]

            if not qualified:
                logger.warning(
                    f"No qualified agents for task {task_label} "
                    f"({len(scored)} scored, minimum {config.thresholds.minimum_match_score})"
                )
                decision = self._fallback(
                    decision_id, start, effective, context, strategy, fallback, rule, scored, queued_task
                )
            else:
                rotation_key = effective.team_id or config.default_queue_id
                selection = self._select(strategy, qualified, rotation_key)
                decision = self._build_decision(
                    decision_id,
                    start,
                    RoutingOutcome.ROUTED,
                    effective,
                    context,
                    strategy,
                    rule,
                    scored,
                    selected=selection.candidate,
                    reason=f"{selection.reason} ({strategy.value})",
                )
                logger.info(
                    f"Routed task {task_label} to {selection.candidate.agent_name} "
                    f"({selection.candidate.agent_id}) score={selection.candidate.total_score} via {strategy.value}"
                )
        except Exception as e:
            logger.error(f"Routing failed for task {task_label} (decision {decision_id}): {e}")
            raise

        self._record(decision)
        return decision

    def route_batch(
        self,
        items: Iterable[Tuple[TaskSkillRequirements, Optional[RoutingContext]]],
        on_routed: Optional[Callable[[RoutingDecision], None]] = None
    ) -> List[RoutingDecision]:
        """Route several tasks, most urgent first.

        Decisions come back in input order. Every item is validated before
        anything is routed. Since the router never records load, pass
        on_routed to update the agent store between tasks.
        """
        items = [(req, ctx or RoutingContext()) for req, ctx in items]
        for req, _ in items:
            req.validate(require_skills=self.config.features.require_skill_requirements)

        order = sorted(range(len(items)), key=lambda i: -items[i][0].priority)
        decisions: List[Optional[RoutingDecision]] = [None] * len(items)

        for i in order:
            decision = self._route(*items[i])
            if decision.is_routed and on_routed:
                on_routed(decision)
            decisions[i] = decision

        routed = sum(1 for d in decisions if d.is_routed)
        logger.info(f"Batch routed {routed} of {len(items)} task(s)")
        return decisions

    def _candidate_agents(self, requirements: TaskSkillRequirements):
        """Fetch agents and drop those that can't take the task at all."""
        agents = self.agent_source.get_available_agents(requirements.team_id)
        excluded = set(requirements.exclude_agent_ids)

        candidates = []
        for agent in agents:
            if agent.agent_id in excluded:
                continue
            if not agent.is_available or not agent.has_capacity:
                continue
            if requirements.required_language and not agent.speaks(requirements.required_language):
                continue
            candidates.append(agent)
        return candidates

    def _select(
        self,
        strategy: RoutingStrategy,
        candidates: Sequence[AgentMatchScore],
        rotation_key: str
    ) -> Selection:
        selector = STRATEGY_SELECTORS[strategy]
        if not uses_rotation(strategy):
            return selector(candidates)

        # Read, select, then advance only if nobody moved the pointer meanwhile
        while True:
            pointer = self.round_robin.get_pointer(rotation_key)
            selection = selector(candidates, pointer)
            if self.round_robin.compare_and_set(rotation_key, pointer, selection.next_pointer):
                return selection
            logger.debug(f"Round robin pointer for {rotation_key} moved concurrently, retrying")

    def _fallback(
        self,
        decision_id: str,
        start: float,
        requirements: TaskSkillRequirements,
        context: RoutingContext,
        strategy: RoutingStrategy,
        fallback: FallbackBehavior,
        rule: Optional[RoutingRule],
        scored: List[AgentMatchScore],
        queued_task: Optional[QueuedTask]
    ) -> RoutingDecision:
        """Handle a pass that found no qualified agent."""
        if queued_task is not None:
            position = self.queue.get_position(queued_task.task_id) if self.queue else None
            if position is None:
                return self._build_decision(
                    decision_id, start, RoutingOutcome.REJECTED, requirements, context, strategy, rule, scored,
                    reason="Task is no longer queued",
                )
            return self._build_decision(
                decision_id, start, RoutingOutcome.QUEUED, requirements, context, strategy, rule, scored,
                reason="No qualified agents - task remains queued",
                queue_id=queued_task.queue_id,
                queue_position=position,
                estimated_wait=self.queue.get_estimated_wait_time(queued_task.queue_id),
            )

        if fallback == FallbackBehavior.QUEUE:
            if self.queue is not None:
                task_id = context.task_id or decision_id
                result = self.queue.enqueue(
                    task_id, requirements, requirements.priority,
                    applied_rule_id=rule.rule_id if rule else None,
                )
                wait = self.queue.get_estimated_wait_time(result.queue_id)
                logger.info(f"Queued task {task_id} in {result.queue_id} at position {result.position}")
                return self._build_decision(
                    decision_id, start, RoutingOutcome.QUEUED, requirements, context, strategy, rule, scored,
                    reason="No qualified agents - task queued",
                    queue_id=result.queue_id,
                    queue_position=result.position,
                    estimated_wait=wait,
                )
            logger.warning("Queue fallback requested but no queue is configured; rejecting")

        return self._build_decision(
            decision_id, start, RoutingOutcome.REJECTED, requirements, context, strategy, rule, scored,
            reason="No qualified agents and fallback exhausted",
        )

    def _build_decision(
        self,
        decision_id: str,
        start: float,
        outcome: RoutingOutcome,
        requirements: TaskSkillRequirements,
        context: RoutingContext,
        strategy: RoutingStrategy,
        rule: Optional[RoutingRule],
        scored: List[AgentMatchScore],
        selected: Optional[AgentMatchScore] = None,
        reason: str = "",
        queue_id: Optional[str] = None,
        queue_position: Optional[int] = None,
        estimated_wait: Optional[int] = None,
    ) -> RoutingDecision:
        return RoutingDecision(
            decision_id=decision_id,
            timestamp=datetime.now(),
            outcome=outcome,
            requirements=requirements,
            strategy=strategy,
            candidates=tuple(sorted(scored, key=lambda s: s.total_score, reverse=True)),
            task_id=context.task_id,
            selected_agent_id=selected.agent_id if selected else None,
            selected_agent_name=selected.agent_name if selected else None,
            applied_rule_id=rule.rule_id if rule else None,
            applied_rule_name=rule.name if rule else None,
            selection_reason=reason,
            queue_id=queue_id,
            queue_position=queue_position,
            estimated_wait_seconds=estimated_wait,
            processing_time_ms=round((time.perf_counter() - start) * 1000, 3),
        )

    def _record(self, decision: RoutingDecision):
        with self._stats_lock:
            self._outcome_counts[decision.outcome.value] += 1

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def check_agent_match(self, agent_id: str, requirements: TaskSkillRequirements) -> MatchResult:
        """Check one agent against requirements without routing."""
        requirements.validate(require_skills=self.config.features.require_skill_requirements)

        agent = self.agent_source.get_agent_by_id(agent_id)
        if agent is None:
            return MatchResult(agent_id=agent_id, matches=False, reason="agent_not_found")

        return AgentScorer(self.hierarchy, self.config).match(agent, requirements)

    # ------------------------------------------------------------------
    # Queue reprocessing
    # ------------------------------------------------------------------

    def process_queue_for_agent(
        self,
        agent_id: str,
        on_routed: Optional[Callable[[QueuedTask, RoutingDecision], None]] = None
    ) -> List[RoutingDecision]:
        """Route queued tasks an agent who just became available can take."""
        return self.reprocessor.process_queue_for_agent(agent_id, on_routed=on_routed)

    def rebalance_queues(
        self,
        on_routed: Optional[Callable[[QueuedTask, RoutingDecision], None]] = None
    ) -> List[RoutingDecision]:
        """Retry every queued task against the agents available now."""
        return self.reprocessor.rebalance_queues(on_routed=on_routed)

    # ------------------------------------------------------------------
    # Hierarchy, rotation and configuration
    # ------------------------------------------------------------------

    def register_skill_hierarchy(self, skill_id: str, parent_skill_ids: Iterable[str]):
        """Register the parents of a skill, replacing any previous mapping."""
        self.hierarchy.register(skill_id, parent_skill_ids)

    def clear_skill_hierarchy(self):
        self.hierarchy.clear()

    def reset_round_robin_state(self, team_id: Optional[str] = None):
        """Clear rotation pointers for one team, or all teams."""
        self.round_robin.reset(team_id)
        logger.info(f"Round robin state reset for {team_id or 'all teams'}")

    def update_config(self, updates: Union[Dict[str, Any], RoutingConfig]) -> RoutingConfig:
        """Merge a partial configuration into the effective one."""
        with self._config_lock:
            if isinstance(updates, RoutingConfig):
                self.config = copy.deepcopy(updates)
            else:
                self.config = self.config.merged(updates)
        logger.info(f"Routing configuration updated: {self.config.to_dict()}")
        return self.get_config()

    def get_config(self) -> RoutingConfig:
        """Get a copy of the effective configuration."""
        return copy.deepcopy(self.config)

    def get_capacity_overview(self, team_id: Optional[str] = None) -> Dict[str, Any]:
        """Capacity and utilization of the available agents, plus queue depth."""
        agents = self.agent_source.get_available_agents(team_id)
        total_capacity = sum(a.max_concurrent_tasks for a in agents)
        used_capacity = sum(a.current_load for a in agents)
        at_capacity = [a for a in agents if not a.has_capacity]
        total_utilization = sum(a.capacity_utilization for a in agents)

        queued = {}
        if self.queue is not None:
            for queue_id in self.queue.get_queue_ids():
                if team_id is None or queue_id == team_id:
                    queued[queue_id] = len(self.queue.get_queued_tasks(queue_id))

        return {
            "team_id": team_id,
            "total_agents": len(agents),
            "agents_with_capacity": len(agents) - len(at_capacity),
            "at_capacity_agents": len(at_capacity),
            "total_capacity": total_capacity,
            "used_capacity": used_capacity,
            "remaining_capacity": max(0, total_capacity - used_capacity),
            "average_utilization_percent": round(total_utilization / len(agents) * 100, 1) if agents else 0,
            "queued_tasks": queued,
            "agents": [
                {
                    "agent_id": a.agent_id,
                    "name": a.name,
                    "availability": a.availability.value,
                    "current_load": a.current_load,
                    "max_concurrent_tasks": a.max_concurrent_tasks,
                    "utilization_percent": round(a.capacity_utilization * 100, 1),
                }
                for a in sorted(agents, key=lambda a: a.agent_id)
            ],
        }

    def get_stats(self) -> Dict[str, Any]:
        """Introspection counters for monitoring."""
        with self._stats_lock:
            decisions = dict(self._outcome_counts)
        return {
            "skill_hierarchy_size": self.hierarchy.size,
            "round_robin_teams": len(self.round_robin.keys()),
            "decisions": decisions,
            "decisions_total": sum(decisions.values()),
        }
