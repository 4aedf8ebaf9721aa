"""Tunable routing configuration and its JSON persistence."""

import copy
import json
import logging
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from .models import FallbackBehavior, InheritanceDirection, RoutingStrategy

logger = logging.getLogger(__name__)


@dataclass
class ScoringThresholds:
    """Cutoffs that gate candidates."""

    minimum_match_score: float = 30.0
    proficiency_gap: int = 1  # Levels below minimum still tolerated
    max_concurrent_task_ratio: float = 0.8  # Utilization above this is penalized


@dataclass
class ScoringWeights:
    """Relative weights of the composite match score."""

    skill_match: float = 50.0
    availability: float = 20.0
    preference: float = 10.0
    capacity_penalty: float = 20.0  # Points deducted at 100% utilization
    preferred_agent_bonus: float = 50.0
    language_bonus: float = 10.0


@dataclass
class RoutingFeatures:
    """Feature switches."""

    enable_skill_inheritance: bool = True
    inheritance_direction: InheritanceDirection = InheritanceDirection.SPECIALIZED_SATISFIES_GENERAL
    enable_affinity_routing: bool = True  # Prefer-list bonus
    require_skill_requirements: bool = False


@dataclass
class RoutingConfig:
    """Effective configuration of a skill router."""

    default_strategy: RoutingStrategy = RoutingStrategy.BEST_MATCH
    default_fallback: FallbackBehavior = FallbackBehavior.QUEUE
    default_queue_id: str = "default"
    thresholds: ScoringThresholds = field(default_factory=ScoringThresholds)
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    features: RoutingFeatures = field(default_factory=RoutingFeatures)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain JSON-compatible values."""
        return _plain(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoutingConfig":
        return cls().merged(data)

    def merged(self, updates: Dict[str, Any]) -> "RoutingConfig":
        """Return a copy with a partial update applied field by field."""
        result = copy.deepcopy(self)
        _apply(result, updates or {})
        return result


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def _apply(target, updates: Dict[str, Any]):
    """Recursively merge a dict into a dataclass, coercing enum values."""
    known = {f.name: f for f in fields(target)}
    for key, value in updates.items():
        if key not in known:
            raise ValueError(f"Unknown configuration key: {key}")
        current = getattr(target, key)
        if hasattr(current, "__dataclass_fields__"):
            if isinstance(value, dict):
                _apply(current, value)
            elif isinstance(value, type(current)):
                setattr(target, key, copy.deepcopy(value))
            else:
                raise ValueError(f"Configuration key {key} expects a mapping")
        elif isinstance(current, Enum):
            setattr(target, key, type(current)(value.value if isinstance(value, Enum) else value))
        elif isinstance(current, bool):
            setattr(target, key, _to_bool(value))
        elif isinstance(current, (int, float)):
            setattr(target, key, type(current)(value))
        else:
            setattr(target, key, value)


def _to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


class RoutingConfigManager:
    """Load and persist routing configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager."""
        self.config_path = config_path or Path.home() / ".skill-router" / "routing_config.json"
        self.config = self._load_config()
        self.updated_at: Optional[datetime] = None

    def _load_config(self) -> RoutingConfig:
        """Load configuration from file."""
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                data.pop("updated_at", None)
                return RoutingConfig.from_dict(data)
            except (OSError, ValueError) as e:
                logger.error(f"Error loading routing config from {self.config_path}: {e}")

        return RoutingConfig()

    def save_config(self):
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.updated_at = datetime.now()
        data = self.config.to_dict()
        data["updated_at"] = self.updated_at.isoformat()
        with open(self.config_path, 'w') as f:
            json.dump(data, f, indent=2)

    def update(self, updates: Dict[str, Any]) -> RoutingConfig:
        """Merge a partial update and persist it."""
        self.config = self.config.merged(updates)
        self.save_config()
        logger.info(f"Routing configuration updated: {sorted(updates)}")
        return self.config

    def set_value(self, dotted_key: str, value: Any) -> RoutingConfig:
        """Set one value addressed as e.g. 'thresholds.minimum_match_score'."""
        update: Dict[str, Any] = {}
        cursor = update
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            cursor = cursor.setdefault(part, {})
        cursor[parts[-1]] = value
        return self.update(update)

    def reset(self) -> RoutingConfig:
        """Restore defaults."""
        self.config = RoutingConfig()
        self.save_config()
        return self.config
