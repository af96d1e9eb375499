"""
Detector thresholds and cooldown durations
Defaults live here; an optional YAML file overrides individual values
"""

from datetime import timedelta
from pathlib import Path
from typing import Dict, Optional, Union

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError


class Thresholds(BaseModel):
    """Numeric constants for every signal detector."""
    model_config = ConfigDict(extra="forbid")

    # Windows (days)
    recent_days: int = 7
    history_days: int = 14
    pattern_days: int = 30

    # Minimum samples
    min_evidence: int = 3
    min_evidence_goal_at_risk: int = 2
    min_evidence_recurring_challenge: int = 2

    # goal_stalled
    goal_stalled_quiet_days: int = 5

    # routine_forming / routine_slipping
    routine_forming_count: int = 3
    routine_slipping_older_count: int = 3
    routine_slipping_rate_ratio: float = 0.5
    routine_slipping_gap_days: int = 3

    # high_challenge_week
    high_challenge_ratio: float = 1.0

    # recurring_challenge
    time_bucket_margin: int = 1

    # positive_pattern
    positive_pattern_count: int = 3

    # Cooldown store
    record_retention_days: int = 30
    cooldown_days: Dict[str, float] = Field(default_factory=lambda: {
        "goal_at_risk": 1,
        "goal_stalled": 3,
        "routine_forming": 3,
        "routine_slipping": 3,
        "high_challenge_week": 3,
        "recurring_challenge": 5,
        "positive_pattern": 7,
    })

    def cooldown_for(self, template_id: str) -> timedelta:
        return timedelta(days=self.cooldown_days.get(template_id, 3))

    def min_evidence_for(self, template_id: str) -> int:
        if template_id == "goal_at_risk":
            return self.min_evidence_goal_at_risk
        if template_id == "recurring_challenge":
            return self.min_evidence_recurring_challenge
        return self.min_evidence


DEFAULT_THRESHOLDS = Thresholds()


def load_thresholds(path: Optional[Union[str, Path]] = None) -> Thresholds:
    """Load thresholds, merging a YAML file over the defaults.

    A missing file falls back to the defaults. Unreadable or invalid content
    raises ConfigError, since configuration is loaded once at startup.
    """
    if path is None:
        return Thresholds()

    path = Path(path)
    if not path.exists():
        logger.warning(f"Thresholds file not found: {path}, using defaults")
        return Thresholds()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            overrides = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(overrides, dict):
        raise ConfigError(f"Thresholds file must contain a mapping, got {type(overrides).__name__}")

    data = Thresholds().model_dump()
    cooldowns = overrides.pop("cooldown_days", None) or {}
    data.update(overrides)
    data["cooldown_days"] = {**data["cooldown_days"], **cooldowns}

    try:
        thresholds = Thresholds(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid thresholds in {path}: {e}") from e

    logger.info(f"Loaded thresholds from {path} ({len(overrides) + len(cooldowns)} overrides)")
    return thresholds
