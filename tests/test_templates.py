import pytest
from datetime import timedelta

from coach.models import CTAKind, PriorityTier, Signal, SignalKind
from coach.provider import SafeProvider
from coach.templates import CARD_TEMPLATES, CardRenderer, build_template_table, template_by_id
from coach.thresholds import Thresholds

from conftest import CHILD_ID, NOW


def _signal(kind, events, entity_id=None, entity_name=None, days=7, **metrics):
    return Signal(
        kind=kind,
        child_id=CHILD_ID,
        entity_id=entity_id,
        entity_name=entity_name,
        window_start=NOW - timedelta(days=days),
        window_end=NOW,
        window_days=days,
        metrics={"count": len(events), **metrics},
        evidence_event_ids=[e.id for e in events],
        confidence=0.5,
    )


class TestTemplateTable:
    """Test the static template table."""

    def test_one_template_per_kind(self):
        assert set(CARD_TEMPLATES) == set(SignalKind)
        for kind, template in CARD_TEMPLATES.items():
            assert template.id == kind.value
            assert template.kind is kind

    def test_tiers(self):
        tiers = {kind.value: t.tier for kind, t in CARD_TEMPLATES.items()}
        assert tiers["goal_at_risk"] == PriorityTier.RISK
        assert tiers["high_challenge_week"] == PriorityTier.RISK
        assert tiers["routine_forming"] == PriorityTier.IMPROVEMENT
        assert tiers["recurring_challenge"] == PriorityTier.IMPROVEMENT
        assert tiers["positive_pattern"] == PriorityTier.CELEBRATION

    def test_only_goal_at_risk_overrides_cooldown(self):
        urgent = [t.id for t in CARD_TEMPLATES.values() if t.urgency_override]
        assert urgent == ["goal_at_risk"]

    def test_copy_keys(self):
        template = CARD_TEMPLATES[SignalKind.ROUTINE_FORMING]
        assert template.title_key == "insights.routine_forming.title"
        assert template.step_keys == [
            "insights.routine_forming.step_1",
            "insights.routine_forming.step_2",
            "insights.routine_forming.step_3",
        ]

    def test_cooldowns_follow_thresholds(self):
        thresholds = Thresholds(cooldown_days={"positive_pattern": 14})
        table = build_template_table(thresholds)
        assert table[SignalKind.POSITIVE_PATTERN].cooldown == timedelta(days=14)
        assert table[SignalKind.ROUTINE_FORMING].cooldown == timedelta(days=3)

    def test_template_by_id(self):
        assert template_by_id("recurring_challenge").kind is SignalKind.RECURRING_CHALLENGE
        assert template_by_id("insufficient_data") is None


class TestCardRenderer:
    """Test rendering and render-time validation."""

    @pytest.fixture
    def share_events(self, make_event):
        return [make_event("bt_share", days_ago=d) for d in (1, 3, 5)]

    @pytest.fixture
    def renderer(self, make_provider, share_events):
        return CardRenderer(SafeProvider(make_provider(share_events)))

    def _index(self, events):
        return {e.id: e for e in events}

    def test_renders_routine_forming_card(self, renderer, share_events):
        signal = _signal(SignalKind.ROUTINE_FORMING, share_events, "bt_share", "Shared toys")

        card = renderer.render(signal, self._index(share_events), NOW, child_name="Maya")

        assert card is not None
        assert card.template_id == "routine_forming"
        assert card.priority == PriorityTier.IMPROVEMENT
        assert card.primary_entity_id == "bt_share"
        assert card.title == "Shared toys is becoming a habit"
        assert card.one_liner == "Maya has done this 3 times in the last 7 days."
        assert len(card.steps) == 3
        assert card.evidence_event_ids == [e.id for e in share_events]
        assert card.evidence_window == 7
        assert card.expires_at == NOW + timedelta(hours=24)
        assert card.latest_evidence_at == max(e.timestamp for e in share_events)
        assert card.cta.kind == CTAKind.OPEN_HISTORY
        assert card.cta.history_filter == "routines"
        assert card.cta.behavior_type_id == "bt_share"
        assert card.localized_content.args["behavior_name"] == "Shared toys"

    def test_card_id_format_and_stability(self, renderer, share_events):
        signal = _signal(SignalKind.ROUTINE_FORMING, share_events, "bt_share", "Shared toys")
        index = self._index(share_events)

        first = renderer.render(signal, index, NOW)
        later = renderer.render(signal, index, NOW + timedelta(minutes=2))

        prefix, digest = first.id.rsplit("-", 1)
        assert prefix == "routine_forming"
        assert len(digest) == 12
        assert first.id == later.id

    def test_child_name_fallback(self, renderer, share_events):
        signal = _signal(SignalKind.ROUTINE_FORMING, share_events, "bt_share", "Shared toys")
        card = renderer.render(signal, self._index(share_events), NOW)
        assert card.one_liner.startswith("your child has done this")

    def test_portuguese_copy(self, make_provider, share_events):
        renderer = CardRenderer(SafeProvider(make_provider(share_events)), locale="pt-BR")
        signal = _signal(SignalKind.ROUTINE_FORMING, share_events, "bt_share", "Shared toys")

        card = renderer.render(signal, self._index(share_events), NOW)

        assert card.title == "Shared toys está virando hábito"

    def test_recurring_challenge_without_time_pattern(self, make_provider, make_event):
        events = [make_event("bt_tantrum", days_ago=d, points=-1) for d in (2, 9)]
        renderer = CardRenderer(SafeProvider(make_provider(events)))
        signal = _signal(
            SignalKind.RECURRING_CHALLENGE, events, "bt_tantrum", "Tantrum", days=14, time_bucket=None,
        )

        card = renderer.render(signal, self._index(events), NOW)

        assert card.localized_content.one_liner_key == "insights.recurring_challenge.one_liner_no_pattern"
        assert "no clear time pattern" in card.one_liner

    def test_goal_card_cta(self, make_provider, make_event, make_goal):
        events = [make_event("bt_share", days_ago=d, points=2) for d in (1, 2)]
        goal = make_goal()
        renderer = CardRenderer(SafeProvider(make_provider(events, [goal])))
        signal = _signal(
            SignalKind.GOAL_AT_RISK, events, goal.id, goal.name,
            days_remaining=10, projected_days=14, progress=0.44,
        )

        card = renderer.render(signal, self._index(events), NOW)

        assert card.priority == PriorityTier.RISK
        assert card.cta.kind == CTAKind.OPEN_GOAL_DETAIL
        assert card.cta.goal_id == goal.id
        assert card.title == "Trip to the zoo needs a push"
        assert "44%" in card.one_liner

    def test_rejects_empty_evidence(self, renderer):
        signal = _signal(SignalKind.ROUTINE_FORMING, [], "bt_share", "Shared toys")
        assert renderer.render(signal, {}, NOW) is None

    def test_rejects_insufficient_evidence(self, renderer, share_events):
        signal = _signal(SignalKind.ROUTINE_FORMING, share_events[:2], "bt_share", "Shared toys")
        assert renderer.render(signal, self._index(share_events), NOW) is None

    def test_rejects_unknown_evidence_id(self, renderer, share_events):
        signal = _signal(SignalKind.ROUTINE_FORMING, share_events, "bt_share", "Shared toys")
        index = self._index(share_events[1:])
        assert renderer.render(signal, index, NOW) is None

    def test_rejects_duplicate_evidence(self, renderer, share_events):
        events = [share_events[0], share_events[0], share_events[1]]
        signal = _signal(SignalKind.ROUTINE_FORMING, events, "bt_share", "Shared toys")
        assert renderer.render(signal, self._index(share_events), NOW) is None

    def test_rejects_other_childs_event(self, renderer, share_events, make_event):
        stranger = make_event("bt_share", days_ago=2, child_id="child_2")
        events = share_events[:2] + [stranger]
        signal = _signal(SignalKind.ROUTINE_FORMING, events, "bt_share", "Shared toys")
        assert renderer.render(signal, self._index(events), NOW) is None

    def test_rejects_event_outside_window(self, renderer, share_events, make_event):
        old = make_event("bt_share", days_ago=9)
        events = share_events[:2] + [old]
        signal = _signal(SignalKind.ROUTINE_FORMING, events, "bt_share", "Shared toys")
        assert renderer.render(signal, self._index(events), NOW) is None

    def test_rejects_inactive_behavior_type(self, make_provider, make_event):
        events = [make_event("bt_retired", days_ago=d) for d in (1, 2, 3)]
        renderer = CardRenderer(SafeProvider(make_provider(events)))
        signal = _signal(SignalKind.ROUTINE_FORMING, events, "bt_retired", "Old habit")
        assert renderer.render(signal, self._index(events), NOW) is None

    def test_rejects_goal_no_longer_active(self, make_provider, make_event, make_goal):
        events = [make_event("bt_share", days_ago=d, points=2) for d in (1, 2)]
        redeemed = make_goal(is_redeemed=True)
        renderer = CardRenderer(SafeProvider(make_provider(events, [redeemed])))
        signal = _signal(SignalKind.GOAL_AT_RISK, events, redeemed.id, redeemed.name)
        assert renderer.render(signal, self._index(events), NOW) is None
