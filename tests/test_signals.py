import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from coach.models import SignalKind
from coach.provider import DataProvider, SafeProvider
from coach.signals import (
    EventSnapshot,
    SignalDetector,
    detect_goal_at_risk,
    detect_goal_stalled,
    detect_high_challenge_week,
    detect_positive_pattern,
    detect_recurring_challenge,
    detect_routine_forming,
    detect_routine_slipping,
    dominant_time_bucket,
    time_bucket,
)
from coach.thresholds import Thresholds

from conftest import CHILD_ID, NOW


def _snapshot(events, behavior_types, goal=None):
    types = {bt.id: bt for bt in behavior_types}
    return EventSnapshot(CHILD_ID, NOW, events, types, goal, Thresholds())


def _triggered(results):
    return [r for r in results if r.triggered]


class TestTimeBuckets:
    """Test time-of-day bucketing."""

    @pytest.mark.parametrize("hour,bucket", [
        (5, "morning"), (11, "morning"),
        (12, "afternoon"), (17, "afternoon"),
        (18, "evening"), (21, "evening"),
        (22, "night"), (0, "night"), (4, "night"),
    ])
    def test_bucket_boundaries(self, hour, bucket):
        assert time_bucket(datetime(2026, 3, 1, hour, 30)) == bucket

    def test_dominant_bucket_needs_clear_margin(self, make_event):
        events = [make_event("bt_tantrum", days_ago=d, hour=8, points=-1) for d in (1, 2, 3)]
        events += [make_event("bt_tantrum", days_ago=d, hour=19, points=-1) for d in (4, 5)]
        assert dominant_time_bucket(events, margin=1) is None

        events = events[:-1]
        assert dominant_time_bucket(events, margin=1) == "morning"

    def test_dominant_bucket_empty(self):
        assert dominant_time_bucket([]) is None


class TestEventSnapshot:
    """Test snapshot filtering."""

    def test_filters_other_children_future_and_old_events(self, make_event, behavior_types):
        mine = make_event("bt_share", days_ago=1)
        other_child = make_event("bt_share", days_ago=1, child_id="child_2")
        future = make_event("bt_share", days_ago=-1)
        too_old = make_event("bt_share", days_ago=31)

        snap = _snapshot([future, mine, other_child, too_old], behavior_types)

        assert [e.id for e in snap.events] == [mine.id]
        assert len(snap) == 1

    def test_events_sorted_by_timestamp(self, make_event, behavior_types):
        late = make_event("bt_share", days_ago=1)
        early = make_event("bt_share", days_ago=3)
        snap = _snapshot([late, early], behavior_types)
        assert [e.id for e in snap.events] == [early.id, late.id]

    def test_inactive_type_not_resolved(self, behavior_types):
        snap = _snapshot([], behavior_types)
        assert snap.active_type("bt_retired") is None
        assert snap.active_type("bt_share").name == "Shared toys"


class TestGoalSignals:
    """Test goal_at_risk and goal_stalled."""

    def test_goal_at_risk_fires_when_projection_exceeds_deadline(self, make_event, make_goal, behavior_types):
        # 14 points in 7 days = 2/day, 28 needed => 14 days, only 10 left
        events = [make_event("bt_share", days_ago=d, hours_ago=2, points=2) for d in range(7)]
        goal = make_goal(target_points=50, current_points=22, due_in_days=10)

        result = detect_goal_at_risk(_snapshot(events, behavior_types, goal))

        assert result.triggered
        signal = result.signal
        assert signal.kind == SignalKind.GOAL_AT_RISK
        assert signal.entity_id == goal.id
        assert signal.metrics["projected_days"] == 14
        assert signal.metrics["days_remaining"] == 10
        assert sorted(signal.evidence_event_ids) == sorted(e.id for e in events)

    def test_goal_at_risk_quiet_when_on_track(self, make_event, make_goal, behavior_types):
        events = [make_event("bt_share", days_ago=d, hours_ago=2, points=2) for d in range(7)]
        goal = make_goal(target_points=50, current_points=40, due_in_days=10)

        result = detect_goal_at_risk(_snapshot(events, behavior_types, goal))

        assert not result.triggered
        assert "fits within" in result.reason

    def test_goal_at_risk_requires_deadline(self, make_event, make_goal, behavior_types):
        events = [make_event("bt_share", days_ago=d, points=1) for d in range(1, 4)]
        goal = make_goal(due_in_days=None)
        assert not detect_goal_at_risk(_snapshot(events, behavior_types, goal)).triggered

    def test_goal_at_risk_skips_past_deadline(self, make_event, make_goal, behavior_types):
        events = [make_event("bt_share", days_ago=d, points=1) for d in range(1, 4)]
        goal = make_goal(due_in_days=-2)
        result = detect_goal_at_risk(_snapshot(events, behavior_types, goal))
        assert not result.triggered
        assert "Deadline" in result.reason

    def test_goal_at_risk_needs_minimum_evidence(self, make_event, make_goal, behavior_types):
        events = [make_event("bt_share", days_ago=1, points=1)]
        goal = make_goal(target_points=50, current_points=0, due_in_days=3)
        result = detect_goal_at_risk(_snapshot(events, behavior_types, goal))
        assert not result.triggered
        assert "Insufficient evidence" in result.reason

    def test_goal_stalled_fires_after_quiet_days(self, make_event, make_goal, behavior_types):
        events = [make_event("bt_share", days_ago=d) for d in (6, 8, 10)]
        goal = make_goal()

        result = detect_goal_stalled(_snapshot(events, behavior_types, goal))

        assert result.triggered
        assert result.signal.metrics["days_since"] == 6
        assert len(result.signal.evidence_event_ids) == 3

    def test_goal_stalled_quiet_with_recent_progress(self, make_event, make_goal, behavior_types):
        events = [make_event("bt_share", days_ago=d) for d in (2, 8, 10)]
        result = detect_goal_stalled(_snapshot(events, behavior_types, make_goal()))
        assert not result.triggered

    def test_goal_stalled_requires_active_goal(self, make_event, make_goal, behavior_types):
        events = [make_event("bt_share", days_ago=d) for d in (6, 8, 10)]
        goal = make_goal(is_redeemed=True)
        assert not detect_goal_stalled(_snapshot(events, behavior_types, goal)).triggered


class TestRoutineSignals:
    """Test routine_forming and routine_slipping."""

    def test_routine_forming_per_behavior(self, make_event, behavior_types):
        events = [make_event("bt_share", days_ago=d) for d in (1, 3, 5)]
        events += [make_event("bt_teeth", days_ago=d) for d in (1, 2)]

        results = _triggered(detect_routine_forming(_snapshot(events, behavior_types)))

        assert len(results) == 1
        signal = results[0].signal
        assert signal.entity_id == "bt_share"
        assert signal.entity_name == "Shared toys"
        assert signal.metrics["count"] == 3
        assert signal.window_days == 7

    def test_routine_forming_ignores_inactive_and_negative_types(self, make_event, behavior_types):
        events = [make_event("bt_retired", days_ago=d) for d in (1, 2, 3)]
        events += [make_event("bt_tantrum", days_ago=d, points=-1) for d in (1, 2, 3)]

        results = detect_routine_forming(_snapshot(events, behavior_types))

        assert _triggered(results) == []
        assert len(results) == 1

    def test_routine_slipping_fires_on_drop_off(self, make_event, behavior_types):
        events = [make_event("bt_teeth", days_ago=d) for d in (8, 9, 10, 11)]

        results = _triggered(detect_routine_slipping(_snapshot(events, behavior_types)))

        assert len(results) == 1
        metrics = results[0].signal.metrics
        assert metrics["older_count"] == 4
        assert metrics["count"] == 0
        assert metrics["days_since"] == 8

    def test_routine_slipping_quiet_when_rate_holds(self, make_event, behavior_types):
        events = [make_event("bt_teeth", days_ago=d) for d in (8, 9, 10, 11)]
        events += [make_event("bt_teeth", days_ago=d) for d in (4, 5)]
        assert _triggered(detect_routine_slipping(_snapshot(events, behavior_types))) == []

    def test_routine_slipping_only_for_routine_category(self, make_event, behavior_types):
        events = [make_event("bt_share", days_ago=d) for d in (8, 9, 10, 11)]
        assert _triggered(detect_routine_slipping(_snapshot(events, behavior_types))) == []


class TestChallengeSignals:
    """Test high_challenge_week and recurring_challenge."""

    def test_high_challenge_week_fires_when_challenges_outnumber_wins(self, make_event, behavior_types):
        events = [make_event("bt_tantrum", days_ago=d, points=-1) for d in (1, 2)]
        events.append(make_event("bt_share", days_ago=3))

        result = detect_high_challenge_week(_snapshot(events, behavior_types))

        assert result.triggered
        assert result.signal.entity_id is None
        assert result.signal.metrics["ratio"] == 2.0
        assert len(result.signal.evidence_event_ids) == 3

    def test_high_challenge_week_with_no_wins(self, make_event, behavior_types):
        events = [make_event("bt_tantrum", days_ago=d, points=-1) for d in (1, 2, 3)]
        result = detect_high_challenge_week(_snapshot(events, behavior_types))
        assert result.triggered
        assert result.signal.metrics["ratio"] is None

    def test_high_challenge_week_quiet_on_good_week(self, make_event, behavior_types):
        events = [make_event("bt_tantrum", days_ago=1, points=-1)]
        events += [make_event("bt_share", days_ago=d) for d in (2, 3)]
        assert not detect_high_challenge_week(_snapshot(events, behavior_types)).triggered

    def test_recurring_challenge_with_time_pattern(self, make_event, behavior_types):
        events = [make_event("bt_tantrum", days_ago=d, hour=19, points=-1) for d in (1, 2, 3)]

        results = _triggered(detect_recurring_challenge(_snapshot(events, behavior_types)))

        assert len(results) == 1
        assert results[0].signal.metrics["time_bucket"] == "evening"
        assert results[0].signal.window_days == 14

    def test_recurring_challenge_without_clear_pattern(self, make_event, behavior_types):
        events = [
            make_event("bt_tantrum", days_ago=2, hour=8, points=-1),
            make_event("bt_tantrum", days_ago=9, hour=19, points=-1),
        ]

        results = _triggered(detect_recurring_challenge(_snapshot(events, behavior_types)))

        assert len(results) == 1
        assert results[0].signal.metrics["time_bucket"] is None

    def test_recurring_challenge_needs_two_occurrences(self, make_event, behavior_types):
        events = [make_event("bt_tantrum", days_ago=2, points=-1)]
        assert _triggered(detect_recurring_challenge(_snapshot(events, behavior_types))) == []


class TestPositivePattern:
    """Test positive_pattern selection."""

    def test_most_frequent_win(self, make_event, behavior_types):
        events = [make_event("bt_share", days_ago=d) for d in (2, 10, 20, 25)]
        events += [make_event("bt_teeth", days_ago=d) for d in (1, 3, 5)]

        result = detect_positive_pattern(_snapshot(events, behavior_types))

        assert result.triggered
        assert result.signal.entity_id == "bt_share"
        assert result.signal.metrics["count"] == 4

    def test_tie_broken_by_recency(self, make_event, behavior_types):
        events = [make_event("bt_share", days_ago=d) for d in (5, 6, 7)]
        events += [make_event("bt_teeth", days_ago=d) for d in (1, 2, 3)]

        result = detect_positive_pattern(_snapshot(events, behavior_types))

        assert result.signal.entity_id == "bt_teeth"

    def test_needs_three_occurrences(self, make_event, behavior_types):
        events = [make_event("bt_share", days_ago=d) for d in (1, 2)]
        assert not detect_positive_pattern(_snapshot(events, behavior_types)).triggered


class TestSignalDetector:
    """Test the detector facade."""

    def test_no_events_no_signals(self, make_provider):
        detector = SignalDetector(SafeProvider(make_provider()))
        assert detector.detect(CHILD_ID, NOW) == []
        assert detector.evaluate(detector.snapshot(CHILD_ID, NOW)) == []

    def test_reports_every_detector(self, make_event, make_provider):
        events = [make_event("bt_share", days_ago=d) for d in (1, 3, 5)]
        detector = SignalDetector(SafeProvider(make_provider(events)))

        results = detector.evaluate(detector.snapshot(CHILD_ID, NOW))

        kinds = {r.kind for r in results}
        assert kinds == set(SignalKind)
        assert {r.kind for r in results if r.triggered} == {
            SignalKind.ROUTINE_FORMING,
            SignalKind.POSITIVE_PATTERN,
        }

    def test_provider_failure_yields_no_signals(self):
        provider = MagicMock(spec=DataProvider)
        provider.events_for.side_effect = RuntimeError("database locked")
        provider.active_goal_for.side_effect = RuntimeError("database locked")

        detector = SignalDetector(SafeProvider(provider))

        assert detector.detect(CHILD_ID, NOW) == []

    def test_goal_for_another_child_ignored(self, make_event, make_goal, make_provider):
        events = [make_event("bt_share", days_ago=d) for d in (1, 2, 3)]
        provider = MagicMock(wraps=make_provider(events))
        provider.active_goal_for.return_value = make_goal(child_id="child_2")

        snap = SignalDetector(SafeProvider(provider)).snapshot(CHILD_ID, NOW)

        assert snap.goal is None

    def test_detection_is_deterministic(self, make_event, make_provider):
        events = [make_event("bt_share", days_ago=d) for d in (1, 3, 5)]
        events += [make_event("bt_tantrum", days_ago=d, hour=19, points=-1) for d in (1, 2)]
        detector = SignalDetector(SafeProvider(make_provider(events)))

        first = [s.model_dump() for s in detector.detect(CHILD_ID, NOW)]
        second = [s.model_dump() for s in detector.detect(CHILD_ID, NOW)]

        assert first == second
