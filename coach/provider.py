"""
Data Provider - read-only access to the host's behavior data

The host application implements DataProvider. The engine only ever reads
through SafeProvider, which turns storage failures into empty results.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger

from .models import BehaviorEvent, BehaviorType, Child, Goal

Window = Tuple[datetime, datetime]


class DataProvider:
    """Read-only accessor supplied by the host application."""

    def events_for(self, child_id: str, window: Window) -> List[BehaviorEvent]:
        """Events for a child with start <= timestamp <= end."""
        raise NotImplementedError

    def behavior_type_for(self, behavior_type_id: str) -> Optional[BehaviorType]:
        raise NotImplementedError

    def active_goal_for(self, child_id: str) -> Optional[Goal]:
        raise NotImplementedError

    def child_for(self, child_id: str) -> Optional[Child]:
        """Child display data, used for copy placeholders only."""
        return None


class InMemoryDataProvider(DataProvider):
    """DataProvider over plain lists, for hosts that keep data in memory."""

    def __init__(
        self,
        events: Iterable[BehaviorEvent] = (),
        behavior_types: Iterable[BehaviorType] = (),
        goals: Iterable[Goal] = (),
        children: Iterable[Child] = (),
    ):
        self._events: List[BehaviorEvent] = list(events)
        self._behavior_types: Dict[str, BehaviorType] = {bt.id: bt for bt in behavior_types}
        self._goals: List[Goal] = list(goals)
        self._children: Dict[str, Child] = {c.id: c for c in children}

    def add_event(self, event: BehaviorEvent) -> None:
        self._events.append(event)

    def add_goal(self, goal: Goal) -> None:
        self._goals.append(goal)

    def events_for(self, child_id: str, window: Window) -> List[BehaviorEvent]:
        start, end = window
        return [
            e for e in self._events
            if e.child_id == child_id and start <= e.timestamp <= end
        ]

    def behavior_type_for(self, behavior_type_id: str) -> Optional[BehaviorType]:
        return self._behavior_types.get(behavior_type_id)

    def active_goal_for(self, child_id: str) -> Optional[Goal]:
        # Most recently created active goal wins
        active = [g for g in self._goals if g.child_id == child_id and g.is_active]
        if not active:
            return None
        return max(active, key=lambda g: (g.created_at, g.id))

    def child_for(self, child_id: str) -> Optional[Child]:
        return self._children.get(child_id)


class SafeProvider:
    """Wraps a DataProvider so read failures degrade to "no data"."""

    def __init__(self, provider: DataProvider):
        self.provider = provider

    def events_for(self, child_id: str, window: Window) -> List[BehaviorEvent]:
        try:
            return list(self.provider.events_for(child_id, window) or [])
        except Exception as e:
            logger.warning(f"Data provider failed reading events for child {child_id}: {e}")
            return []

    def behavior_type_for(self, behavior_type_id: str) -> Optional[BehaviorType]:
        try:
            return self.provider.behavior_type_for(behavior_type_id)
        except Exception as e:
            logger.warning(f"Data provider failed reading behavior type {behavior_type_id}: {e}")
            return None

    def active_goal_for(self, child_id: str) -> Optional[Goal]:
        try:
            return self.provider.active_goal_for(child_id)
        except Exception as e:
            logger.warning(f"Data provider failed reading goal for child {child_id}: {e}")
            return None

    def child_for(self, child_id: str) -> Optional[Child]:
        try:
            return self.provider.child_for(child_id)
        except Exception as e:
            logger.warning(f"Data provider failed reading child {child_id}: {e}")
            return None
