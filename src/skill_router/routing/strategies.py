"""Selection strategies.

Each strategy is a pure function ``(candidates, pointer) -> Selection``.
``pointer`` is the team's round-robin pointer (the id of the agent last
selected) and is ignored by strategies that do not rotate.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from ..core.models import AgentMatchScore, RoutingStrategy


@dataclass
class Selection:
    """The chosen candidate and, for rotating strategies, the new pointer."""

    candidate: AgentMatchScore
    reason: str
    next_pointer: Optional[str] = None


def _last_assigned_key(candidate: AgentMatchScore) -> float:
    # Never-assigned agents sort before everyone else
    if candidate.last_assigned_at is None:
        return float("-inf")
    return candidate.last_assigned_at.timestamp()


def select_best_match(candidates: Sequence[AgentMatchScore], pointer: Optional[str] = None) -> Selection:
    """Highest score; ties go to lower load, then the longest-unassigned agent."""
    if not candidates:
        raise ValueError("No candidates to select from")

    winner = min(
        candidates,
        key=lambda c: (-c.total_score, c.current_load, _last_assigned_key(c), c.agent_id),
    )
    return Selection(winner, f"Best match with score {winner.total_score}")


def select_round_robin(candidates: Sequence[AgentMatchScore], pointer: Optional[str] = None) -> Selection:
    """Next agent after the pointer in agent-id order, wrapping around."""
    if not candidates:
        raise ValueError("No candidates to select from")

    ordered = sorted(candidates, key=lambda c: c.agent_id)
    winner = ordered[0]
    if pointer is not None:
        for candidate in ordered:
            if candidate.agent_id > pointer:
                winner = candidate
                break

    return Selection(winner, f"Round robin rotation after {pointer or 'start'}", next_pointer=winner.agent_id)


def select_least_busy(candidates: Sequence[AgentMatchScore], pointer: Optional[str] = None) -> Selection:
    """Lowest capacity utilization; ties go to the higher score."""
    if not candidates:
        raise ValueError("No candidates to select from")

    winner = min(
        candidates,
        key=lambda c: (c.capacity_utilization, -c.total_score, c.agent_id),
    )
    return Selection(winner, f"Least busy at {winner.capacity_utilization:.0%} utilization")


STRATEGY_SELECTORS: Dict[RoutingStrategy, Callable[..., Selection]] = {
    RoutingStrategy.BEST_MATCH: select_best_match,
    RoutingStrategy.ROUND_ROBIN: select_round_robin,
    RoutingStrategy.LEAST_BUSY: select_least_busy,
}


def uses_rotation(strategy: RoutingStrategy) -> bool:
    """Whether a strategy reads and advances the round-robin pointer."""
    return strategy == RoutingStrategy.ROUND_ROBIN
