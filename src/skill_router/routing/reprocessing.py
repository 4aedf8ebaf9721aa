"""Retry queued tasks when agents free up."""

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set

from ..core.models import QueuedTask, RoutingContext, RoutingDecision
from ..core.scorer import AgentScorer

if TYPE_CHECKING:
    from .router import SkillRouter

logger = logging.getLogger(__name__)

RoutedCallback = Callable[[QueuedTask, RoutingDecision], None]


class QueueReprocessor:
    """Sweeps the router's queue and routes what can now be placed.

    Nothing here schedules itself; callers decide when to sweep.
    """

    def __init__(self, router: "SkillRouter", on_routed: Optional[RoutedCallback] = None):
        self.router = router
        self.on_routed = on_routed

    def process_queue_for_agent(
        self,
        agent_id: str,
        on_routed: Optional[RoutedCallback] = None
    ) -> List[RoutingDecision]:
        """Route queued tasks that a newly available agent could take."""
        queue = self.router.queue
        if queue is None:
            return []

        agent = self.router.agent_source.get_agent_by_id(agent_id)
        if agent is None or not agent.is_available or not agent.has_capacity:
            logger.debug(f"Agent {agent_id} cannot take queued work")
            return []

        scorer = AgentScorer(self.router.hierarchy, self.router.config)
        eligible = [
            task for task in self._all_tasks()
            if scorer.match(agent, task.requirements).matches
        ]
        logger.info(f"Agent {agent_id} can take {len(eligible)} queued task(s)")

        return self._sweep(eligible, on_routed, stop_when_full=agent_id)

    def rebalance_queues(self, on_routed: Optional[RoutedCallback] = None) -> List[RoutingDecision]:
        """Retry every queued task."""
        if self.router.queue is None:
            return []

        tasks = self._all_tasks()
        logger.info(f"Rebalancing {len(tasks)} queued task(s)")
        return self._sweep(tasks, on_routed)

    def _all_tasks(self) -> List[QueuedTask]:
        queue = self.router.queue
        tasks = []
        for queue_id in queue.get_queue_ids():
            tasks.extend(queue.get_queued_tasks(queue_id))
        return sorted(tasks, key=lambda t: (-t.priority, t.enqueued_at))

    def _sweep(
        self,
        tasks: List[QueuedTask],
        on_routed: Optional[RoutedCallback],
        stop_when_full: Optional[str] = None
    ) -> List[RoutingDecision]:
        callback = on_routed or self.on_routed
        queue = self.router.queue
        assigned: Dict[str, int] = {}
        full: Set[str] = set()
        decisions: List[RoutingDecision] = []

        for task in tasks:
            if stop_when_full and stop_when_full in full:
                break

            requirements = task.requirements
            if full:
                extra = [a for a in sorted(full) if a not in requirements.exclude_agent_ids]
                requirements = replace(requirements, exclude_agent_ids=requirements.exclude_agent_ids + extra)

            decision = self.router._route(requirements, RoutingContext(task_id=task.task_id), queued_task=task)

            if decision.is_routed:
                if not queue.remove_task(task.task_id):
                    logger.info(f"Task {task.task_id} was claimed elsewhere, discarding decision")
                    continue

                selected = decision.selected_candidate
                count = assigned.get(decision.selected_agent_id, 0) + 1
                assigned[decision.selected_agent_id] = count
                if selected and selected.current_load + count >= selected.max_concurrent_tasks:
                    full.add(decision.selected_agent_id)

                if callback:
                    callback(task, decision)

            decisions.append(decision)

        routed = sum(1 for d in decisions if d.is_routed)
        logger.info(f"Queue sweep routed {routed} of {len(tasks)} task(s)")
        return decisions
