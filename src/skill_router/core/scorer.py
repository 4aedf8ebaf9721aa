"""Agent scoring - how well one agent fits a task's skill requirements."""

import logging
from typing import List, Optional

from .config import RoutingConfig
from .hierarchy import ResolvedSkill, SkillHierarchy
from .models import (
    AgentMatchScore,
    AgentProfile,
    MatchedSkill,
    MatchResult,
    ProficiencyLevel,
    ScoreAdjustment,
    SkillRequirement,
    TaskSkillRequirements,
)

logger = logging.getLogger(__name__)

PREFERRED_SKILL_FACTOR = 0.5  # Preferred skills count half as much as required ones
MAX_SURPLUS_BONUS = 0.25
SURPLUS_BONUS_PER_LEVEL = 0.1
SEVERE_GAP_FACTOR = 0.25
BASE_PREFERENCE_SCORE = 50.0


class AgentScorer:
    """Scores agents against task requirements."""

    def __init__(self, hierarchy: Optional[SkillHierarchy] = None, config: Optional[RoutingConfig] = None):
        self.hierarchy = hierarchy or SkillHierarchy()
        self.config = config or RoutingConfig()

    def proficiency_factor(self, agent_level: ProficiencyLevel, required_level: ProficiencyLevel) -> float:
        """Ratio of credit earned for a held skill.

        1.0 for an exact match, up to 1.25 when exceeding, below 1.0 when
        short of the minimum.
        """
        surplus = agent_level.rank - required_level.rank
        if surplus >= 0:
            return 1 + min(surplus * SURPLUS_BONUS_PER_LEVEL, MAX_SURPLUS_BONUS)

        gap = -surplus
        if gap > self.config.thresholds.proficiency_gap:
            return SEVERE_GAP_FACTOR
        return 0.75 - gap * 0.15

    def satisfies(self, held: Optional[ResolvedSkill], requirement: SkillRequirement) -> bool:
        """Whether a held skill is close enough to the required proficiency."""
        if held is None:
            return False
        gap = requirement.minimum_proficiency.rank - held.proficiency.rank
        return gap <= self.config.thresholds.proficiency_gap

    def evaluate(self, agent: AgentProfile, requirements: TaskSkillRequirements) -> AgentMatchScore:
        """Compute the match verdict and composite score for one agent."""
        config = self.config
        weights = config.weights
        features = config.features

        resolved = self.hierarchy.expand(
            agent.skills,
            direction=features.inheritance_direction,
            enabled=features.enable_skill_inheritance,
        )

        adjustments: List[ScoreAdjustment] = []
        matched: List[MatchedSkill] = []
        missing: List[str] = []
        skill_points = 0.0
        max_points = 0.0

        for req in requirements.required_skills:
            held = resolved.get(req.skill_id)
            max_points += req.weight

            if held is None:
                matched.append(MatchedSkill(req.skill_id, req.minimum_proficiency, None, req.is_required))
                adjustments.append(ScoreAdjustment(f"Missing skill {req.skill_id}", -req.weight))
            else:
                factor = self.proficiency_factor(held.proficiency, req.minimum_proficiency)
                points = req.weight * factor
                skill_points += points
                matched.append(MatchedSkill(
                    skill_id=req.skill_id,
                    required_proficiency=req.minimum_proficiency,
                    agent_proficiency=held.proficiency,
                    is_required=req.is_required,
                    inherited_from=held.inherited_from,
                    score=round(points, 2),
                ))
                if factor >= 1:
                    adjustments.append(ScoreAdjustment(f"Skill {req.skill_id} meets requirement", round(points, 2)))
                else:
                    adjustments.append(ScoreAdjustment(
                        f"Skill {req.skill_id} below required proficiency", round(points - req.weight, 2)
                    ))

            if req.is_required and not self.satisfies(held, req):
                missing.append(req.skill_id)

        for pref in requirements.preferred_skills:
            held = resolved.get(pref.skill_id)
            if held is None:
                continue
            bonus_weight = pref.weight * PREFERRED_SKILL_FACTOR
            bonus = bonus_weight * self.proficiency_factor(held.proficiency, pref.minimum_proficiency)
            skill_points += bonus
            max_points += bonus_weight
            matched.append(MatchedSkill(
                skill_id=pref.skill_id,
                required_proficiency=pref.minimum_proficiency,
                agent_proficiency=held.proficiency,
                is_required=False,
                inherited_from=held.inherited_from,
                score=round(bonus, 2),
            ))
            adjustments.append(ScoreAdjustment(f"Preferred skill {pref.skill_id} bonus", round(bonus, 2)))

        skill_score = (skill_points / max_points) * 100 if max_points > 0 else 100.0

        utilization = agent.capacity_utilization
        availability_score = max(0.0, (1 - utilization) * 100)

        preference_score = BASE_PREFERENCE_SCORE
        if features.enable_affinity_routing and agent.agent_id in requirements.prefer_agent_ids:
            preference_score += weights.preferred_agent_bonus
            adjustments.append(ScoreAdjustment("Preferred agent", weights.preferred_agent_bonus))

        if requirements.preferred_languages:
            if any(agent.speaks(lang) for lang in requirements.preferred_languages):
                preference_score += weights.language_bonus
                adjustments.append(ScoreAdjustment("Preferred language match", weights.language_bonus))

        total_weight = weights.skill_match + weights.availability + weights.preference
        total = 0.0
        if total_weight > 0:
            total = (
                skill_score * weights.skill_match
                + availability_score * weights.availability
                + preference_score * weights.preference
            ) / total_weight

        if utilization > config.thresholds.max_concurrent_task_ratio:
            penalty = weights.capacity_penalty * utilization
            total -= penalty
            adjustments.append(ScoreAdjustment(f"Capacity {utilization:.0%} above limit", -round(penalty, 2)))

        excluded = agent.agent_id in requirements.exclude_agent_ids
        if excluded:
            adjustments.append(ScoreAdjustment("Agent excluded", 0.0))

        return AgentMatchScore(
            agent_id=agent.agent_id,
            agent_name=agent.name,
            total_score=round(total, 2),
            skill_score=round(skill_score, 2),
            availability_score=round(availability_score, 2),
            preference_score=round(preference_score, 2),
            matches=not missing and not excluded,
            missing_skills=missing,
            matched_skills=matched,
            adjustments=adjustments,
            current_load=agent.current_load,
            max_concurrent_tasks=agent.max_concurrent_tasks,
            capacity_utilization=round(utilization, 4),
            last_assigned_at=agent.last_assigned_at,
        )

    def match(self, agent: AgentProfile, requirements: TaskSkillRequirements) -> MatchResult:
        """Pass/fail verdict for one agent, with the reason when it fails."""
        score = self.evaluate(agent, requirements)

        reason = None
        if score.missing_skills:
            reason = "missing_skills"
        elif not score.matches:
            reason = "excluded"

        return MatchResult(
            agent_id=agent.agent_id,
            matches=score.matches,
            missing_skills=list(score.missing_skills),
            reason=reason,
            score=score,
        )

    def is_qualified(self, score: AgentMatchScore) -> bool:
        """Whether a scored agent may be routed to."""
        return score.matches and score.total_score >= self.config.thresholds.minimum_match_score
