"""
TinyWins coach cards engine
Evidence-backed, cooldown-aware recommendation cards for behavior logs
"""

from .engine import CoachingEngine
from .models import (
    BehaviorCategory,
    BehaviorEvent,
    BehaviorType,
    Child,
    CoachCard,
    Goal,
    PriorityTier,
    Signal,
    SignalKind,
)
from .provider import DataProvider, InMemoryDataProvider
from .cooldowns import CooldownStore

__version__ = "0.3.0"

__all__ = [
    "CoachingEngine",
    "BehaviorCategory",
    "BehaviorEvent",
    "BehaviorType",
    "Child",
    "CoachCard",
    "Goal",
    "PriorityTier",
    "Signal",
    "SignalKind",
    "DataProvider",
    "InMemoryDataProvider",
    "CooldownStore",
]
