"""Skill hierarchy: which skills an agent's declared skills also cover."""

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set

from .models import AgentSkill, InheritanceDirection, ProficiencyLevel

logger = logging.getLogger(__name__)


@dataclass
class ResolvedSkill:
    """A skill an agent effectively holds, directly or by inheritance."""

    skill_id: str
    proficiency: ProficiencyLevel
    inherited_from: Optional[str] = None

    @property
    def is_inherited(self) -> bool:
        return self.inherited_from is not None


class SkillHierarchy:
    """Map of skill id to parent skill ids.

    Reads vastly outnumber writes, so the map is an immutable snapshot that
    writers rebuild under a lock and swap in. Readers grab the current
    snapshot once and never lock.
    """

    def __init__(self, mapping: Optional[Mapping[str, Iterable[str]]] = None):
        self._lock = threading.Lock()
        self._parents: Mapping[str, FrozenSet[str]] = MappingProxyType({})
        if mapping:
            self.register_many(mapping)

    def register(self, skill_id: str, parent_skill_ids: Iterable[str]):
        """Store or replace the parents of a skill."""
        parents = frozenset(p for p in parent_skill_ids if p and p != skill_id)
        with self._lock:
            updated = dict(self._parents)
            updated[skill_id] = parents
            self._parents = MappingProxyType(updated)
        logger.debug(f"Registered skill hierarchy {skill_id} -> {sorted(parents)}")

    def register_many(self, mapping: Mapping[str, Iterable[str]]):
        """Replace the parents of several skills in one swap."""
        with self._lock:
            updated = dict(self._parents)
            for skill_id, parent_skill_ids in mapping.items():
                updated[skill_id] = frozenset(p for p in parent_skill_ids if p and p != skill_id)
            self._parents = MappingProxyType(updated)

    def clear(self):
        with self._lock:
            self._parents = MappingProxyType({})

    @property
    def size(self) -> int:
        return len(self._parents)

    def snapshot(self) -> Dict[str, List[str]]:
        return {skill_id: sorted(parents) for skill_id, parents in self._parents.items()}

    def parents_of(self, skill_id: str) -> Set[str]:
        return set(self._parents.get(skill_id, ()))

    def ancestors_of(self, skill_id: str) -> Set[str]:
        """All skills a skill specializes, transitively."""
        return _walk(skill_id, self._parents)

    def descendants_of(self, skill_id: str) -> Set[str]:
        """All skills specializing a skill, transitively."""
        return _walk(skill_id, _children(self._parents))

    def expand(
        self,
        agent_skills: Iterable[AgentSkill],
        direction: InheritanceDirection = InheritanceDirection.SPECIALIZED_SATISFIES_GENERAL,
        enabled: bool = True
    ) -> Dict[str, ResolvedSkill]:
        """Resolve the full set of skills an agent covers.

        Inactive skills are ignored. Only certified skills are inherited;
        an inherited skill keeps the proficiency of its source, and the
        highest proficiency wins when a skill is reachable more than once.
        """
        held = [s for s in agent_skills if s.active]
        resolved: Dict[str, ResolvedSkill] = {}

        for skill in held:
            existing = resolved.get(skill.skill_id)
            if existing is None or skill.proficiency.rank > existing.proficiency.rank:
                resolved[skill.skill_id] = ResolvedSkill(skill.skill_id, skill.proficiency)

        if not enabled:
            return resolved

        snapshot = self._parents
        edges = snapshot if direction == InheritanceDirection.SPECIALIZED_SATISFIES_GENERAL else _children(snapshot)

        for skill in held:
            if not skill.certified:
                continue
            for implied in _walk(skill.skill_id, edges):
                existing = resolved.get(implied)
                if existing is None or skill.proficiency.rank > existing.proficiency.rank:
                    resolved[implied] = ResolvedSkill(implied, skill.proficiency, inherited_from=skill.skill_id)

        return resolved


def _children(parents: Mapping[str, FrozenSet[str]]) -> Dict[str, Set[str]]:
    children: Dict[str, Set[str]] = {}
    for skill_id, parent_ids in parents.items():
        for parent_id in parent_ids:
            children.setdefault(parent_id, set()).add(skill_id)
    return children


def _walk(start: str, edges: Mapping[str, Iterable[str]]) -> Set[str]:
    seen: Set[str] = set()
    stack = list(edges.get(start, ()))
    while stack:
        current = stack.pop()
        if current in seen or current == start:
            continue
        seen.add(current)
        stack.extend(edges.get(current, ()))
    return seen
