import pytest
from datetime import datetime, timedelta

from coach.cooldowns import CooldownStore
from coach.engine import CoachingEngine
from coach.models import BehaviorCategory, BehaviorEvent, BehaviorType, Child, Goal
from coach.provider import InMemoryDataProvider
from coach.thresholds import Thresholds

NOW = datetime(2026, 3, 15, 12, 0, 0)
CHILD_ID = "child_1"


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def behavior_types():
    return [
        BehaviorType(id="bt_share", name="Shared toys", category=BehaviorCategory.POSITIVE),
        BehaviorType(id="bt_teeth", name="Brushed teeth", category=BehaviorCategory.ROUTINE_POSITIVE),
        BehaviorType(id="bt_tantrum", name="Tantrum", category=BehaviorCategory.NEGATIVE),
        BehaviorType(id="bt_hit", name="Hitting", category=BehaviorCategory.NEGATIVE),
        BehaviorType(id="bt_retired", name="Old habit", category=BehaviorCategory.POSITIVE, is_active=False),
    ]


@pytest.fixture
def make_event():
    """Factory for events relative to NOW. `hour` pins the wall-clock hour."""
    counter = {"n": 0}

    def _make(behavior_type_id, days_ago=0, hours_ago=0, points=1, child_id=CHILD_ID, hour=None):
        counter["n"] += 1
        ts = NOW - timedelta(days=days_ago, hours=hours_ago)
        if hour is not None:
            ts = ts.replace(hour=hour)
        return BehaviorEvent(
            id=f"ev_{counter['n']:03d}",
            child_id=child_id,
            behavior_type_id=behavior_type_id,
            timestamp=ts,
            points=points,
        )

    return _make


@pytest.fixture
def make_goal():
    def _make(target_points=50, current_points=0, due_in_days=10, goal_id="goal_1", child_id=CHILD_ID, **kwargs):
        return Goal(
            id=goal_id,
            child_id=child_id,
            name="Trip to the zoo",
            target_points=target_points,
            current_points=current_points,
            created_at=NOW - timedelta(days=20),
            due_date=NOW + timedelta(days=due_in_days) if due_in_days is not None else None,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_provider(behavior_types):
    def _make(events=(), goals=()):
        return InMemoryDataProvider(
            events=events,
            behavior_types=behavior_types,
            goals=goals,
            children=[Child(id=CHILD_ID, name="Maya")],
        )

    return _make


@pytest.fixture
def make_engine():
    """Engine with an in-memory cooldown store unless one is given."""
    def _make(provider, cooldowns=None, **kwargs):
        return CoachingEngine(
            provider,
            cooldowns=cooldowns or CooldownStore(None),
            thresholds=Thresholds(),
            clock=lambda: NOW,
            **kwargs,
        )

    return _make
