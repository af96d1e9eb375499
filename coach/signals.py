"""
Signal detection over a child's behavior events.

Every detector is a pure function of an EventSnapshot: it never touches the
provider, the cooldown store, or any shared state, so its output is always
"what is objectively true right now". Suppression happens later.

Detectors:
    - goal_at_risk: trailing 7-day earn rate projects past the deadline
    - goal_stalled: no positive moments for several days on an active goal
    - routine_forming: one behavior logged repeatedly in the last week
    - routine_slipping: an established routine dropped off
    - high_challenge_week: challenges match or outnumber wins
    - recurring_challenge: the same challenge keeps coming back
    - positive_pattern: the most frequent win of the month
"""

import math
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from loguru import logger

from .models import BehaviorCategory, BehaviorEvent, BehaviorType, Goal, Signal, SignalKind
from .provider import SafeProvider
from .thresholds import DEFAULT_THRESHOLDS, Thresholds
from .utils.dates import as_naive_utc

TIME_BUCKETS = ("morning", "afternoon", "evening", "night")


def time_bucket(ts: datetime) -> str:
    """Morning 5-11, afternoon 12-17, evening 18-21, night 22-4."""
    hour = ts.hour
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "night"


@dataclass
class DetectionResult:
    """Outcome of one detector run; signal is None when it did not fire."""
    kind: SignalKind
    signal: Optional[Signal]
    reason: str
    entity_id: Optional[str] = None

    @property
    def triggered(self) -> bool:
        return self.signal is not None


class EventSnapshot:
    """A child's events for the widest window, pre-partitioned for detectors."""

    def __init__(
        self,
        child_id: str,
        now: datetime,
        events: List[BehaviorEvent],
        behavior_types: Dict[str, BehaviorType],
        goal: Optional[Goal] = None,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
    ):
        self.child_id = child_id
        self.now = now
        self.thresholds = thresholds
        self.goal = goal
        self.behavior_types = behavior_types
        start = now - timedelta(days=thresholds.pattern_days)
        self.events = sorted(
            (e for e in events if e.child_id == child_id and start <= e.timestamp <= now),
            key=lambda e: (e.timestamp, e.id),
        )
        self.by_id = {e.id: e for e in self.events}

    def window_start(self, days: int) -> datetime:
        return self.now - timedelta(days=days)

    def since(self, days: int) -> List[BehaviorEvent]:
        start = self.window_start(days)
        return [e for e in self.events if e.timestamp >= start]

    def positives(self, days: int) -> List[BehaviorEvent]:
        return [e for e in self.since(days) if e.is_positive]

    def challenges(self, days: int) -> List[BehaviorEvent]:
        return [e for e in self.since(days) if e.is_challenge]

    def active_type(self, behavior_type_id: str) -> Optional[BehaviorType]:
        bt = self.behavior_types.get(behavior_type_id)
        if bt is None or not bt.is_active:
            return None
        return bt

    def __len__(self) -> int:
        return len(self.events)


def _group_by_type(events: List[BehaviorEvent]) -> Dict[str, List[BehaviorEvent]]:
    groups: Dict[str, List[BehaviorEvent]] = defaultdict(list)
    for e in events:
        groups[e.behavior_type_id].append(e)
    return groups


def _unique_days(events: List[BehaviorEvent]) -> int:
    return len({e.timestamp.date() for e in events})


def _build(
    snap: EventSnapshot,
    kind: SignalKind,
    days: int,
    evidence: List[BehaviorEvent],
    explanation: str,
    confidence: float,
    entity_id: Optional[str] = None,
    entity_name: Optional[str] = None,
    **metrics,
) -> DetectionResult:
    minimum = snap.thresholds.min_evidence_for(kind.value)
    if len(evidence) < minimum:
        return DetectionResult(
            kind, None,
            f"Insufficient evidence ({len(evidence)} < {minimum})",
            entity_id,
        )
    signal = Signal(
        kind=kind,
        child_id=snap.child_id,
        entity_id=entity_id,
        entity_name=entity_name,
        window_start=snap.window_start(days),
        window_end=snap.now,
        window_days=days,
        metrics=metrics,
        evidence_event_ids=[e.id for e in evidence],
        confidence=max(0.0, min(1.0, confidence)),
        explanation=explanation,
    )
    return DetectionResult(kind, signal, explanation, entity_id)


# ==================== GOAL SIGNALS ====================

def detect_goal_at_risk(snap: EventSnapshot) -> DetectionResult:
    kind = SignalKind.GOAL_AT_RISK
    t = snap.thresholds
    goal = snap.goal
    if goal is None:
        return DetectionResult(kind, None, "No active goal")
    if not goal.is_active or not goal.has_deadline:
        return DetectionResult(kind, None, "Goal has no deadline, is redeemed, or expired", goal.id)

    days_remaining = goal.days_remaining(snap.now)
    if not days_remaining:
        return DetectionResult(kind, None, "Deadline has passed", goal.id)
    if goal.points_needed <= 0:
        return DetectionResult(kind, None, "Goal is already complete", goal.id)

    recent = snap.positives(t.recent_days)
    earned = sum(e.points for e in recent)
    rate = earned / t.recent_days
    projected = goal.points_needed / rate if rate > 0 else math.inf

    if projected <= days_remaining:
        return DetectionResult(
            kind, None,
            f"Projected {projected:.1f} days fits within {days_remaining} remaining",
            goal.id,
        )

    return _build(
        snap, kind, t.recent_days, recent,
        f"Goal '{goal.name}' needs {goal.points_needed} points in {days_remaining} days, "
        f"earning {rate:.1f}/day",
        1.0 - days_remaining / projected,
        entity_id=goal.id,
        entity_name=goal.name,
        count=len(recent),
        points_needed=goal.points_needed,
        days_remaining=days_remaining,
        earn_rate=round(rate, 2),
        projected_days=None if math.isinf(projected) else math.ceil(projected),
        progress=round(goal.progress, 4),
    )


def detect_goal_stalled(snap: EventSnapshot) -> DetectionResult:
    kind = SignalKind.GOAL_STALLED
    t = snap.thresholds
    goal = snap.goal
    if goal is None or not goal.is_active:
        return DetectionResult(kind, None, "No active goal")

    history = snap.positives(t.history_days)
    if len(history) < t.min_evidence:
        return DetectionResult(kind, None, f"Insufficient events in {t.history_days}-day window", goal.id)

    quiet = snap.positives(t.goal_stalled_quiet_days)
    if quiet:
        return DetectionResult(
            kind, None,
            f"Found {len(quiet)} events in last {t.goal_stalled_quiet_days} days",
            goal.id,
        )

    days_since = (snap.now - history[-1].timestamp).days
    return _build(
        snap, kind, t.history_days, history,
        f"Goal '{goal.name}' has stalled: no progress in {days_since} days",
        days_since / 10.0,
        entity_id=goal.id,
        entity_name=goal.name,
        count=len(history),
        days_since=days_since,
        days_remaining=goal.days_remaining(snap.now),
        progress=round(goal.progress, 4),
    )


# ==================== ROUTINE SIGNALS ====================

def detect_routine_forming(snap: EventSnapshot) -> List[DetectionResult]:
    kind = SignalKind.ROUTINE_FORMING
    t = snap.thresholds
    results = []
    for type_id, events in sorted(_group_by_type(snap.positives(t.recent_days)).items()):
        bt = snap.active_type(type_id)
        if bt is None or not bt.category.is_positive:
            continue
        if len(events) < t.routine_forming_count:
            continue
        results.append(_build(
            snap, kind, t.recent_days, events,
            f"'{bt.name}' logged {len(events)} times in {t.recent_days} days",
            len(events) / 7.0,
            entity_id=bt.id,
            entity_name=bt.name,
            count=len(events),
            unique_days=_unique_days(events),
        ))

    if not results:
        results.append(DetectionResult(
            kind, None,
            f"No behavior logged {t.routine_forming_count}+ times in {t.recent_days} days",
        ))
    return results


def detect_routine_slipping(snap: EventSnapshot) -> List[DetectionResult]:
    kind = SignalKind.ROUTINE_SLIPPING
    t = snap.thresholds
    split = snap.window_start(t.recent_days)
    results = []

    for type_id, events in sorted(_group_by_type(snap.positives(t.history_days)).items()):
        bt = snap.active_type(type_id)
        if bt is None or bt.category is not BehaviorCategory.ROUTINE_POSITIVE:
            continue

        older = [e for e in events if e.timestamp < split]
        recent = [e for e in events if e.timestamp >= split]
        if len(older) < t.routine_slipping_older_count:
            results.append(DetectionResult(kind, None, f"'{bt.name}': no established pattern", bt.id))
            continue
        if len(recent) >= len(older) * t.routine_slipping_rate_ratio:
            results.append(DetectionResult(
                kind, None,
                f"'{bt.name}': recent {len(recent)} vs older {len(older)} is not a drop",
                bt.id,
            ))
            continue
        days_since = (snap.now - events[-1].timestamp).days
        if days_since < t.routine_slipping_gap_days:
            results.append(DetectionResult(
                kind, None, f"'{bt.name}': gap of {days_since} days is too short", bt.id,
            ))
            continue

        results.append(_build(
            snap, kind, t.history_days, events,
            f"'{bt.name}' slipped: {len(older)} then {len(recent)}, last seen {days_since} days ago",
            days_since / 7.0,
            entity_id=bt.id,
            entity_name=bt.name,
            count=len(recent),
            older_count=len(older),
            days_since=days_since,
        ))

    if not results:
        results.append(DetectionResult(kind, None, "No routine behaviors in the last 14 days"))
    return results


# ==================== CHALLENGE SIGNALS ====================

def detect_high_challenge_week(snap: EventSnapshot) -> DetectionResult:
    kind = SignalKind.HIGH_CHALLENGE_WEEK
    t = snap.thresholds
    positives = snap.positives(t.recent_days)
    challenges = snap.challenges(t.recent_days)
    total = len(positives) + len(challenges)

    if total < t.min_evidence:
        return DetectionResult(kind, None, f"Insufficient total events ({total} < {t.min_evidence})")

    if not positives:
        return _build(
            snap, kind, t.recent_days, challenges,
            f"{len(challenges)} challenges and no wins in {t.recent_days} days",
            1.0,
            count=len(challenges),
            positive_count=0,
            ratio=None,
        )

    ratio = len(challenges) / len(positives)
    if ratio < t.high_challenge_ratio:
        return DetectionResult(kind, None, f"Challenge ratio {ratio:.2f} below {t.high_challenge_ratio}")

    evidence = sorted(challenges + positives, key=lambda e: (e.timestamp, e.id))
    return _build(
        snap, kind, t.recent_days, evidence,
        f"{len(challenges)} challenges vs {len(positives)} wins",
        ratio / 2.0,
        count=len(challenges),
        positive_count=len(positives),
        ratio=round(ratio, 2),
    )


def dominant_time_bucket(events: List[BehaviorEvent], margin: int = 1) -> Optional[str]:
    """The time bucket that beats the runner-up by more than `margin`, else None."""
    counts = Counter(time_bucket(e.timestamp) for e in events)
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], TIME_BUCKETS.index(kv[0])))
    if not ranked:
        return None
    top, top_count = ranked[0]
    runner_up = ranked[1][1] if len(ranked) > 1 else 0
    if top_count - runner_up > margin:
        return top
    return None


def detect_recurring_challenge(snap: EventSnapshot) -> List[DetectionResult]:
    kind = SignalKind.RECURRING_CHALLENGE
    t = snap.thresholds
    results = []
    for type_id, events in sorted(_group_by_type(snap.challenges(t.history_days)).items()):
        bt = snap.active_type(type_id)
        if bt is None:
            continue
        if len(events) < t.min_evidence_recurring_challenge:
            continue
        bucket = dominant_time_bucket(events, t.time_bucket_margin)
        where = f"mostly in the {bucket}" if bucket else "no clear time pattern"
        results.append(_build(
            snap, kind, t.history_days, events,
            f"'{bt.name}' happened {len(events)} times in {t.history_days} days, {where}",
            min(1.0, len(events) / 5.0),
            entity_id=bt.id,
            entity_name=bt.name,
            count=len(events),
            time_bucket=bucket,
        ))

    if not results:
        results.append(DetectionResult(kind, None, "No challenge repeated in the last 14 days"))
    return results


# ==================== CELEBRATION SIGNALS ====================

def detect_positive_pattern(snap: EventSnapshot) -> DetectionResult:
    kind = SignalKind.POSITIVE_PATTERN
    t = snap.thresholds
    candidates = [
        (type_id, events)
        for type_id, events in _group_by_type(snap.positives(t.pattern_days)).items()
        if snap.active_type(type_id) is not None
    ]
    if not candidates:
        return DetectionResult(kind, None, f"No wins in {t.pattern_days} days")

    # Most frequent, then most recently seen, then id
    candidates.sort(key=lambda c: (-len(c[1]), -c[1][-1].timestamp.timestamp(), c[0]))
    type_id, events = candidates[0]
    bt = snap.active_type(type_id)

    if len(events) < t.positive_pattern_count:
        return DetectionResult(
            kind, None,
            f"Top win '{bt.name}' only logged {len(events)} times",
            type_id,
        )

    return _build(
        snap, kind, t.pattern_days, events,
        f"'{bt.name}' is the most frequent win: {len(events)} times in {t.pattern_days} days",
        len(events) / 10.0,
        entity_id=bt.id,
        entity_name=bt.name,
        count=len(events),
        unique_days=_unique_days(events),
    )


# ==================== DETECTOR ====================

class SignalDetector:
    """Runs every detector for one child against a single snapshot."""

    def __init__(self, provider: SafeProvider, thresholds: Optional[Thresholds] = None):
        self.provider = provider
        self.thresholds = thresholds or Thresholds()

    def snapshot(self, child_id: str, now: datetime) -> EventSnapshot:
        """Read everything the detectors need from the provider, once."""
        now = as_naive_utc(now)
        window = (now - timedelta(days=self.thresholds.pattern_days), now)
        events = self.provider.events_for(child_id, window)

        behavior_types: Dict[str, BehaviorType] = {}
        for type_id in sorted({e.behavior_type_id for e in events}):
            bt = self.provider.behavior_type_for(type_id)
            if bt is not None:
                behavior_types[type_id] = bt

        goal = self.provider.active_goal_for(child_id)
        if goal is not None and goal.child_id != child_id:
            logger.warning(f"Provider returned goal {goal.id} for another child, ignoring")
            goal = None

        return EventSnapshot(child_id, now, events, behavior_types, goal, self.thresholds)

    def evaluate(self, snap: EventSnapshot) -> List[DetectionResult]:
        """Every detector's outcome, triggered or not."""
        if not snap.events:
            logger.debug(f"No events for child {snap.child_id}, skipping detectors")
            return []

        results: List[DetectionResult] = [
            detect_goal_at_risk(snap),
            detect_goal_stalled(snap),
        ]
        results.extend(detect_routine_forming(snap))
        results.extend(detect_routine_slipping(snap))
        results.append(detect_high_challenge_week(snap))
        results.extend(detect_recurring_challenge(snap))
        results.append(detect_positive_pattern(snap))

        for r in results:
            if not r.triggered:
                logger.debug(f"[{r.kind.value}] not triggered: {r.reason}")
        return results

    def detect(self, child_id: str, now: datetime) -> List[Signal]:
        snap = self.snapshot(child_id, now)
        return [r.signal for r in self.evaluate(snap) if r.signal is not None]
