"""
Pydantic models for the coach engine data contracts
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils.dates import as_naive_utc


class BehaviorCategory(str, Enum):
    POSITIVE = "positive"
    ROUTINE_POSITIVE = "routine_positive"
    NEGATIVE = "negative"

    @property
    def is_positive(self) -> bool:
        return self is not BehaviorCategory.NEGATIVE


class SignalKind(str, Enum):
    GOAL_AT_RISK = "goal_at_risk"
    GOAL_STALLED = "goal_stalled"
    ROUTINE_FORMING = "routine_forming"
    ROUTINE_SLIPPING = "routine_slipping"
    HIGH_CHALLENGE_WEEK = "high_challenge_week"
    RECURRING_CHALLENGE = "recurring_challenge"
    POSITIVE_PATTERN = "positive_pattern"


class PriorityTier(str, Enum):
    RISK = "risk"
    IMPROVEMENT = "improvement"
    CELEBRATION = "celebration"

    @property
    def rank(self) -> int:
        """Output order of the tier (risk first)."""
        return _TIER_RANK[self]


_TIER_RANK = {
    PriorityTier.RISK: 0,
    PriorityTier.IMPROVEMENT: 1,
    PriorityTier.CELEBRATION: 2,
}


class CTAKind(str, Enum):
    OPEN_GOAL_DETAIL = "open_goal_detail"
    OPEN_GOALS_PICKER = "open_goals_picker"
    OPEN_HISTORY = "open_history"
    OPEN_ADD_MOMENT = "open_add_moment"


# ==================== HOST DATA ====================

class Child(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class BehaviorType(BaseModel):
    """Reference data for a loggable behavior."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Behavior type identifier")
    name: str = Field(..., description="Display name")
    icon: str = Field("", description="Icon reference")
    category: BehaviorCategory = Field(..., description="positive / routine_positive / negative")
    is_active: bool = Field(True, description="Inactive types are hidden from new logs")


class BehaviorEvent(BaseModel):
    """A single timestamped, point-valued log entry for a child."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Event identifier")
    child_id: str = Field(..., description="Child the event was logged for")
    behavior_type_id: str = Field(..., description="Behavior type identifier")
    timestamp: datetime = Field(..., description="When the moment happened")
    points: int = Field(..., description="Signed points; positive = win, negative = challenge")
    note: Optional[str] = Field(None, description="Optional free-text note")
    has_media: bool = Field(False, description="Photo/video attached")

    @field_validator("timestamp")
    @classmethod
    def timestamp_to_utc(cls, v: datetime) -> datetime:
        return as_naive_utc(v)

    @property
    def is_positive(self) -> bool:
        return self.points > 0

    @property
    def is_challenge(self) -> bool:
        return self.points < 0


class Goal(BaseModel):
    """A reward the child is earning points toward."""
    model_config = ConfigDict(frozen=True)

    id: str
    child_id: str
    name: str
    target_points: int
    current_points: int = 0
    created_at: datetime
    due_date: Optional[datetime] = None
    is_redeemed: bool = False
    is_expired: bool = False

    @field_validator("created_at", "due_date")
    @classmethod
    def dates_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)

    @property
    def has_deadline(self) -> bool:
        return self.due_date is not None

    @property
    def is_active(self) -> bool:
        return not self.is_redeemed and not self.is_expired

    @property
    def points_needed(self) -> int:
        return max(0, self.target_points - self.current_points)

    @property
    def progress(self) -> float:
        if self.target_points <= 0:
            return 0.0
        return min(self.current_points / self.target_points, 1.0)

    def days_remaining(self, now: datetime) -> Optional[int]:
        """Whole days until the deadline, never negative."""
        if self.due_date is None:
            return None
        return max(0, (self.due_date - now).days)


# ==================== ENGINE DATA ====================

class Signal(BaseModel):
    """A detected, evidenced candidate pattern prior to rendering."""
    model_config = ConfigDict(frozen=True)

    kind: SignalKind
    child_id: str
    entity_id: Optional[str] = Field(None, description="Behavior type or goal the signal is about")
    entity_name: Optional[str] = None
    window_start: datetime
    window_end: datetime
    window_days: int
    metrics: Dict[str, Union[int, float, str, None]] = Field(default_factory=dict)
    evidence_event_ids: List[str] = Field(default_factory=list)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    explanation: str = Field("", description="Diagnostic only, never shown to users")


class CardTemplate(BaseModel):
    """Static, versioned mapping from a signal kind to card behavior."""
    model_config = ConfigDict(frozen=True)

    id: str
    kind: SignalKind
    tier: PriorityTier
    version: int = 1
    cta_kind: CTAKind
    history_filter: Optional[str] = None
    cooldown: timedelta
    urgency_override: bool = False
    min_evidence: int = 3
    step_count: int = 3

    @property
    def title_key(self) -> str:
        return f"insights.{self.id}.title"

    @property
    def one_liner_key(self) -> str:
        return f"insights.{self.id}.one_liner"

    @property
    def why_key(self) -> str:
        return f"insights.{self.id}.why"

    @property
    def step_keys(self) -> List[str]:
        return [f"insights.{self.id}.step_{i + 1}" for i in range(self.step_count)]


class CallToAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: CTAKind
    child_id: str
    goal_id: Optional[str] = None
    behavior_type_id: Optional[str] = None
    history_filter: Optional[str] = None
    days: Optional[int] = None


class LocalizedContent(BaseModel):
    """Localization keys plus the arguments used to fill them."""
    model_config = ConfigDict(frozen=True)

    title_key: str
    one_liner_key: str
    step_keys: List[str] = Field(default_factory=list)
    why_key: str
    args: Dict[str, str] = Field(default_factory=dict)


class CoachCard(BaseModel):
    """The rendered, user-facing recommendation unit."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Deterministic id (template + child + entity + window end)")
    child_id: str
    priority: PriorityTier
    title: str
    one_liner: str
    steps: List[str] = Field(default_factory=list)
    why_summary: str = ""
    evidence_event_ids: List[str]
    cta: CallToAction
    expires_at: datetime
    template_id: str
    evidence_window: int = Field(..., description="Evidence window length in days")
    primary_entity_id: Optional[str] = None
    localized_content: LocalizedContent
    latest_evidence_at: Optional[datetime] = None

    @property
    def is_entity_scoped(self) -> bool:
        return self.primary_entity_id is not None


class CooldownRecord(BaseModel):
    """Last committed display / interaction for one (template, entity)."""
    last_committed_at: datetime
    last_interacted_at: Optional[datetime] = None

    @field_validator("last_committed_at", "last_interacted_at")
    @classmethod
    def dates_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)
