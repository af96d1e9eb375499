"""
Card templates and the renderer that turns signals into coach cards.

The template table is keyed by SignalKind: one static record per kind, no
per-kind classes. A card's tier comes only from its template.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional

from loguru import logger

from .errors import EvidenceError
from .i18n import DEFAULT_LOCALE, get_string, normalize_locale
from .models import (
    BehaviorEvent,
    CallToAction,
    CardTemplate,
    CoachCard,
    CTAKind,
    LocalizedContent,
    PriorityTier,
    Signal,
    SignalKind,
)
from .provider import SafeProvider
from .thresholds import DEFAULT_THRESHOLDS, Thresholds
from .utils.text import render, stable_digest

GOAL_KINDS = {SignalKind.GOAL_AT_RISK, SignalKind.GOAL_STALLED}

# kind -> (tier, cta, history filter, urgency override)
_TEMPLATE_SPECS = {
    SignalKind.GOAL_AT_RISK: (PriorityTier.RISK, CTAKind.OPEN_GOAL_DETAIL, None, True),
    SignalKind.HIGH_CHALLENGE_WEEK: (PriorityTier.RISK, CTAKind.OPEN_HISTORY, "challenges", False),
    SignalKind.GOAL_STALLED: (PriorityTier.IMPROVEMENT, CTAKind.OPEN_GOAL_DETAIL, None, False),
    SignalKind.ROUTINE_FORMING: (PriorityTier.IMPROVEMENT, CTAKind.OPEN_HISTORY, "routines", False),
    SignalKind.ROUTINE_SLIPPING: (PriorityTier.IMPROVEMENT, CTAKind.OPEN_HISTORY, "routines", False),
    SignalKind.RECURRING_CHALLENGE: (PriorityTier.IMPROVEMENT, CTAKind.OPEN_HISTORY, "challenges", False),
    SignalKind.POSITIVE_PATTERN: (PriorityTier.CELEBRATION, CTAKind.OPEN_HISTORY, "positives", False),
}


def build_template_table(thresholds: Thresholds = DEFAULT_THRESHOLDS) -> Dict[SignalKind, CardTemplate]:
    """Build the kind -> template table with cooldowns from `thresholds`."""
    table = {}
    for kind, (tier, cta, history_filter, urgent) in _TEMPLATE_SPECS.items():
        table[kind] = CardTemplate(
            id=kind.value,
            kind=kind,
            tier=tier,
            cta_kind=cta,
            history_filter=history_filter,
            cooldown=thresholds.cooldown_for(kind.value),
            urgency_override=urgent,
            min_evidence=thresholds.min_evidence_for(kind.value),
        )
    return table


CARD_TEMPLATES: Dict[SignalKind, CardTemplate] = build_template_table()


def template_by_id(template_id: str, table: Optional[Mapping[SignalKind, CardTemplate]] = None) -> Optional[CardTemplate]:
    table = table if table is not None else CARD_TEMPLATES
    try:
        return table.get(SignalKind(template_id))
    except ValueError:
        return None


class CardRenderer:
    """Validates a signal's evidence and fills its template's copy."""

    def __init__(
        self,
        provider: SafeProvider,
        templates: Optional[Dict[SignalKind, CardTemplate]] = None,
        locale: str = DEFAULT_LOCALE,
        card_ttl: timedelta = timedelta(hours=24),
    ):
        self.provider = provider
        self.templates = templates if templates is not None else CARD_TEMPLATES
        self.locale = normalize_locale(locale)
        self.card_ttl = card_ttl

    def render(
        self,
        signal: Signal,
        events_by_id: Mapping[str, BehaviorEvent],
        now: datetime,
        child_name: Optional[str] = None,
    ) -> Optional[CoachCard]:
        """Render one card, or None if the signal fails validation."""
        template = self.templates.get(signal.kind)
        if template is None:
            logger.warning(f"No template for signal kind {signal.kind.value}")
            return None
        try:
            evidence = self.validate(signal, template, events_by_id, now)
        except EvidenceError as e:
            logger.debug(f"Dropping {signal.kind.value} for child {signal.child_id}: {e.reason}")
            return None
        return self._build(signal, template, evidence, now, child_name)

    def validate(
        self,
        signal: Signal,
        template: CardTemplate,
        events_by_id: Mapping[str, BehaviorEvent],
        now: datetime,
    ) -> List[BehaviorEvent]:
        """Re-check evidence ownership, window and subject entity.

        Raises:
            EvidenceError: if any check fails
        """
        ids = signal.evidence_event_ids
        if not ids:
            raise EvidenceError(template.id, "no evidence")
        if len(ids) < template.min_evidence:
            raise EvidenceError(template.id, f"insufficient evidence: {len(ids)} < {template.min_evidence}")
        if len(set(ids)) != len(ids):
            raise EvidenceError(template.id, "duplicate evidence ids")

        start = max(signal.window_start, now - timedelta(days=signal.window_days))
        end = min(signal.window_end, now)
        evidence = []
        for event_id in ids:
            event = events_by_id.get(event_id)
            if event is None:
                raise EvidenceError(template.id, f"evidence {event_id} not found")
            if event.child_id != signal.child_id:
                raise EvidenceError(template.id, f"evidence {event_id} belongs to another child")
            if not start <= event.timestamp <= end:
                raise EvidenceError(template.id, f"evidence {event_id} outside window")
            evidence.append(event)

        if signal.entity_id is not None:
            self._check_entity(signal, template)
        return evidence

    def _check_entity(self, signal: Signal, template: CardTemplate) -> None:
        if signal.kind in GOAL_KINDS:
            goal = self.provider.active_goal_for(signal.child_id)
            if goal is None or goal.id != signal.entity_id or not goal.is_active:
                raise EvidenceError(template.id, f"goal {signal.entity_id} is no longer active")
            return
        bt = self.provider.behavior_type_for(signal.entity_id)
        if bt is None or not bt.is_active:
            raise EvidenceError(template.id, f"behavior type {signal.entity_id} missing or inactive")

    def _copy_args(self, signal: Signal, child_name: Optional[str]) -> Dict[str, str]:
        m = signal.metrics
        args = {
            "child_name": child_name or get_string("child_fallback", self.locale),
            "count": m.get("count", len(signal.evidence_event_ids)),
            "days": signal.window_days,
        }
        if signal.kind in GOAL_KINDS:
            args["goal_name"] = signal.entity_name
        elif signal.entity_name is not None:
            args["behavior_name"] = signal.entity_name
        if m.get("progress") is not None:
            args["progress"] = f"{int(m['progress'] * 100)}%"
        if m.get("time_bucket"):
            args["time_bucket"] = get_string(f"time.{m['time_bucket']}", self.locale)
        for key in ("days_remaining", "projected_days", "days_since", "older_count", "earn_rate"):
            if m.get(key) is not None:
                args[key] = m[key]
        return {k: str(v) for k, v in args.items() if v is not None}

    def _build(
        self,
        signal: Signal,
        template: CardTemplate,
        evidence: List[BehaviorEvent],
        now: datetime,
        child_name: Optional[str],
    ) -> CoachCard:
        args = self._copy_args(signal, child_name)

        one_liner_key = template.one_liner_key
        if signal.kind is SignalKind.RECURRING_CHALLENGE and not signal.metrics.get("time_bucket"):
            one_liner_key = f"{one_liner_key}_no_pattern"

        content = LocalizedContent(
            title_key=template.title_key,
            one_liner_key=one_liner_key,
            step_keys=template.step_keys,
            why_key=template.why_key,
            args=args,
        )

        entity = signal.entity_id
        card_id = "{}-{}".format(template.id, stable_digest([
            template.id,
            signal.child_id,
            entity or "none",
            signal.window_end.date().isoformat(),
        ]))

        return CoachCard(
            id=card_id,
            child_id=signal.child_id,
            priority=template.tier,
            title=render(get_string(content.title_key, self.locale), args),
            one_liner=render(get_string(content.one_liner_key, self.locale), args),
            steps=[render(get_string(k, self.locale), args) for k in content.step_keys],
            why_summary=render(get_string(content.why_key, self.locale), args),
            evidence_event_ids=[e.id for e in evidence],
            cta=self._cta(signal, template),
            expires_at=now + self.card_ttl,
            template_id=template.id,
            evidence_window=signal.window_days,
            primary_entity_id=entity,
            localized_content=content,
            latest_evidence_at=max(e.timestamp for e in evidence),
        )

    def _cta(self, signal: Signal, template: CardTemplate) -> CallToAction:
        if template.cta_kind is CTAKind.OPEN_GOAL_DETAIL:
            if signal.entity_id is None:
                return CallToAction(kind=CTAKind.OPEN_GOALS_PICKER, child_id=signal.child_id)
            return CallToAction(kind=CTAKind.OPEN_GOAL_DETAIL, child_id=signal.child_id, goal_id=signal.entity_id)
        if template.cta_kind is CTAKind.OPEN_HISTORY:
            return CallToAction(
                kind=CTAKind.OPEN_HISTORY,
                child_id=signal.child_id,
                behavior_type_id=signal.entity_id,
                history_filter=template.history_filter,
                days=signal.window_days,
            )
        return CallToAction(kind=template.cta_kind, child_id=signal.child_id)
