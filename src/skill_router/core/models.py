"""Data model for skill-based routing."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class ProficiencyLevel(Enum):
    """Ordinal skill mastery."""

    NOVICE = "novice"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def rank(self) -> int:
        return PROFICIENCY_WEIGHTS[self]


PROFICIENCY_WEIGHTS: Dict[ProficiencyLevel, int] = {
    ProficiencyLevel.NOVICE: 1,
    ProficiencyLevel.INTERMEDIATE: 2,
    ProficiencyLevel.ADVANCED: 3,
    ProficiencyLevel.EXPERT: 4,
}


class AgentAvailability(Enum):
    """Agent availability status."""

    AVAILABLE = "available"
    BUSY = "busy"
    AWAY = "away"
    OFFLINE = "offline"


class SkillCategory(Enum):
    """Skill groupings used by the catalog."""

    PROCEDURE = "procedure"
    ADMINISTRATIVE = "administrative"
    CUSTOMER_SERVICE = "customer_service"
    LANGUAGE = "language"
    CLINICAL = "clinical"


class RoutingStrategy(Enum):
    """How a winner is picked from the qualified candidates."""

    BEST_MATCH = "best_match"
    ROUND_ROBIN = "round_robin"
    LEAST_BUSY = "least_busy"


class FallbackBehavior(Enum):
    """Policy applied when no agent qualifies."""

    QUEUE = "queue"
    REJECT = "reject"


class InheritanceDirection(Enum):
    """Which way a registered skill hierarchy broadens a match."""

    SPECIALIZED_SATISFIES_GENERAL = "specialized_satisfies_general"
    GENERAL_SATISFIES_SPECIALIZED = "general_satisfies_specialized"


class RoutingOutcome(Enum):
    """Outcome of a routing decision."""

    ROUTED = "routed"
    QUEUED = "queued"
    REJECTED = "rejected"


class UrgencyLevel(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class Channel(Enum):
    VOICE = "voice"
    WHATSAPP = "whatsapp"
    WEB = "web"
    CHAT = "chat"


class LeadClassification(Enum):
    HOT = "hot"
    WARM = "warm"
    COLD = "cold"
    UNQUALIFIED = "unqualified"


class RoutingValidationError(ValueError):
    """Raised when routing requirements are malformed."""


@dataclass
class Skill:
    """A skill in the catalog, optionally specializing a parent skill."""

    skill_id: str
    name: str
    category: SkillCategory
    parent_skill_id: Optional[str] = None


@dataclass
class AgentSkill:
    """A skill held by an agent."""

    skill_id: str
    proficiency: ProficiencyLevel = ProficiencyLevel.INTERMEDIATE
    certified: bool = True
    active: bool = True


@dataclass
class PerformanceStats:
    """Historical performance figures for an agent."""

    tasks_completed: int = 0
    avg_handle_time_seconds: float = 0.0
    satisfaction_score: float = 0.0


@dataclass
class AgentProfile:
    """Read-only snapshot of an agent as provided by the agent source."""

    agent_id: str
    name: str
    team_id: Optional[str] = None
    skills: List[AgentSkill] = field(default_factory=list)
    availability: AgentAvailability = AgentAvailability.AVAILABLE
    current_load: int = 0
    max_concurrent_tasks: int = 1
    last_assigned_at: Optional[datetime] = None
    performance: PerformanceStats = field(default_factory=PerformanceStats)
    primary_languages: List[str] = field(default_factory=lambda: ["en"])
    secondary_languages: List[str] = field(default_factory=list)
    preferred_channels: List[Channel] = field(default_factory=list)

    @property
    def capacity_utilization(self) -> float:
        """Current load divided by maximum concurrent capacity."""
        if self.max_concurrent_tasks <= 0:
            return 1.0
        return self.current_load / self.max_concurrent_tasks

    @property
    def has_capacity(self) -> bool:
        return self.current_load < self.max_concurrent_tasks

    @property
    def is_available(self) -> bool:
        return self.availability == AgentAvailability.AVAILABLE

    @property
    def languages(self) -> List[str]:
        return self.primary_languages + [
            lang for lang in self.secondary_languages if lang not in self.primary_languages
        ]

    def speaks(self, language: str) -> bool:
        return language.lower() in [lang.lower() for lang in self.languages]


@dataclass
class SkillRequirement:
    """One skill a task asks for."""

    skill_id: str
    minimum_proficiency: ProficiencyLevel = ProficiencyLevel.INTERMEDIATE
    is_required: bool = True
    weight: float = 50.0


@dataclass
class TaskSkillRequirements:
    """Everything a task needs from the agent that takes it."""

    required_skills: List[SkillRequirement] = field(default_factory=list)
    preferred_skills: List[SkillRequirement] = field(default_factory=list)
    team_id: Optional[str] = None
    exclude_agent_ids: List[str] = field(default_factory=list)
    prefer_agent_ids: List[str] = field(default_factory=list)
    preferred_languages: List[str] = field(default_factory=list)
    required_language: Optional[str] = None
    priority: int = 50

    def validate(self, require_skills: bool = False):
        """Fail fast on malformed requirements."""
        if require_skills and not self.required_skills:
            raise RoutingValidationError("At least one required skill must be specified")

        for requirement in self.required_skills + self.preferred_skills:
            if not requirement.skill_id or not requirement.skill_id.strip():
                raise RoutingValidationError("Skill requirement is missing a skill id")
            if requirement.weight < 0:
                raise RoutingValidationError(
                    f"Skill requirement {requirement.skill_id} has a negative weight"
                )

        if not 0 <= self.priority <= 100:
            raise RoutingValidationError(f"Priority must be between 0 and 100, got {self.priority}")


@dataclass
class TimeWindow:
    """Hours (and optionally weekdays, Monday=0) during which a rule applies."""

    start_hour: int = 0
    end_hour: int = 24
    days_of_week: Optional[List[int]] = None

    def contains(self, moment: datetime) -> bool:
        if moment.hour < self.start_hour or moment.hour >= self.end_hour:
            return False
        if self.days_of_week is not None and moment.weekday() not in self.days_of_week:
            return False
        return True


@dataclass
class RuleConditions:
    """Conditions of a routing rule. None means "any"."""

    procedure_types: Optional[List[str]] = None
    urgency_levels: Optional[List[UrgencyLevel]] = None
    channels: Optional[List[Channel]] = None
    is_vip: Optional[bool] = None
    is_existing_patient: Optional[bool] = None
    lead_classifications: Optional[List[LeadClassification]] = None
    time_window: Optional[TimeWindow] = None


@dataclass
class RuleRouting:
    """What a matched rule overrides."""

    strategy: Optional[RoutingStrategy] = None
    skill_requirements: Optional[TaskSkillRequirements] = None
    fallback_behavior: Optional[FallbackBehavior] = None


@dataclass
class RoutingRule:
    """Priority-ordered conditional override (higher priority wins)."""

    rule_id: str
    name: str
    priority: int = 0
    conditions: RuleConditions = field(default_factory=RuleConditions)
    routing: RuleRouting = field(default_factory=RuleRouting)
    active: bool = True


@dataclass
class RoutingContext:
    """Per-call metadata about the task being routed."""

    task_id: Optional[str] = None
    procedure_type: Optional[str] = None
    channel: Optional[Channel] = None
    urgency_level: Optional[UrgencyLevel] = None
    is_vip: Optional[bool] = None
    is_existing_patient: Optional[bool] = None
    lead_classification: Optional[LeadClassification] = None
    language: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass
class MatchedSkill:
    """How one requirement was (or was not) met by an agent."""

    skill_id: str
    required_proficiency: ProficiencyLevel
    agent_proficiency: Optional[ProficiencyLevel]
    is_required: bool
    inherited_from: Optional[str] = None
    score: float = 0.0


@dataclass
class ScoreAdjustment:
    reason: str
    amount: float


@dataclass
class AgentMatchScore:
    """A scored candidate."""

    agent_id: str
    agent_name: str
    total_score: float
    skill_score: float
    availability_score: float
    preference_score: float
    matches: bool
    missing_skills: List[str] = field(default_factory=list)
    matched_skills: List[MatchedSkill] = field(default_factory=list)
    adjustments: List[ScoreAdjustment] = field(default_factory=list)
    current_load: int = 0
    max_concurrent_tasks: int = 1
    capacity_utilization: float = 0.0
    last_assigned_at: Optional[datetime] = None


@dataclass
class MatchResult:
    """Result of checking a single agent against requirements."""

    agent_id: str
    matches: bool
    missing_skills: List[str] = field(default_factory=list)
    reason: Optional[str] = None
    score: Optional[AgentMatchScore] = None


@dataclass(frozen=True)
class RoutingDecision:
    """Immutable record of one routing call."""

    decision_id: str
    timestamp: datetime
    outcome: RoutingOutcome
    requirements: TaskSkillRequirements
    strategy: RoutingStrategy
    candidates: Tuple[AgentMatchScore, ...] = ()
    task_id: Optional[str] = None
    selected_agent_id: Optional[str] = None
    selected_agent_name: Optional[str] = None
    applied_rule_id: Optional[str] = None
    applied_rule_name: Optional[str] = None
    selection_reason: str = ""
    queue_id: Optional[str] = None
    queue_position: Optional[int] = None
    estimated_wait_seconds: Optional[int] = None
    processing_time_ms: float = 0.0

    def __post_init__(self):
        if not self.decision_id:
            raise ValueError("Routing decision requires a decision id")
        if self.outcome == RoutingOutcome.ROUTED and not self.selected_agent_id:
            raise ValueError("Routed decision requires a selected agent")
        if self.outcome == RoutingOutcome.QUEUED and self.queue_position is None:
            raise ValueError("Queued decision requires a queue position")

    @property
    def is_routed(self) -> bool:
        return self.outcome == RoutingOutcome.ROUTED

    @property
    def selected_candidate(self) -> Optional[AgentMatchScore]:
        for candidate in self.candidates:
            if candidate.agent_id == self.selected_agent_id:
                return candidate
        return None


@dataclass
class QueuedTask:
    """A task waiting in a routing queue."""

    task_id: str
    requirements: TaskSkillRequirements
    priority: int
    queue_id: str
    enqueued_at: datetime = field(default_factory=datetime.now)
    applied_rule_id: Optional[str] = None


@dataclass
class EnqueueResult:
    queue_id: str
    position: int
