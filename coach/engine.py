"""
Coaching engine - the single entry point for card generation

Data Provider -> Signal Detector -> Card Renderer -> Cooldown filter ->
one card per entity -> Safety-rail selector -> cards. Impression callbacks
write cooldowns back.
Generation never commits cooldowns itself.
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple, Type

from loguru import logger

from .config import Config
from .cooldowns import CooldownStore
from .debug_report import CooldownInfo, DataStats, DebugReport, DropReason, SignalOutcome
from .i18n import normalize_locale
from .impressions import ImpressionState, ImpressionTracker
from .models import BehaviorCategory, CoachCard
from .provider import DataProvider, SafeProvider
from .selector import select_cards
from .signals import DetectionResult, EventSnapshot, SignalDetector
from .templates import GOAL_KINDS, CardRenderer, build_template_table
from .thresholds import Thresholds, load_thresholds
from .utils.dates import as_naive_utc, utc_now

GOAL_TEMPLATE_IDS = {kind.value for kind in GOAL_KINDS}


class CoachingEngine:
    """Long-lived, one per session."""

    def __init__(
        self,
        provider: DataProvider,
        cooldowns: Optional[CooldownStore] = None,
        config: Type[Config] = Config,
        thresholds: Optional[Thresholds] = None,
        locale: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config
        self.clock = clock
        self.thresholds = thresholds or load_thresholds(config.THRESHOLDS_PATH)
        self.templates = build_template_table(self.thresholds)
        self.provider = SafeProvider(provider)

        if cooldowns is None:
            path = config.COOLDOWN_PATH if config.COOLDOWN_PERSIST else None
            cooldowns = CooldownStore(path, self.templates, self.thresholds.record_retention_days)
        self.cooldowns = cooldowns

        self.detector = SignalDetector(self.provider, self.thresholds)
        self.renderer = CardRenderer(
            self.provider,
            self.templates,
            normalize_locale(locale or config.LOCALE),
            timedelta(hours=config.CARD_TTL_HOURS),
        )
        self.tracker = ImpressionTracker(self.cooldowns, config.DWELL_SECONDS, clock)

    # ==================== GENERATION ====================

    def generate_cards(self, child_id: str, now: Optional[datetime] = None) -> List[CoachCard]:
        """Ordered, capped, non-suppressed cards for a child.

        Never raises to the caller: anything unexpected yields an empty list.
        """
        now = as_naive_utc(now or self.clock())
        try:
            cards, _ = self._run(child_id, now)
        except Exception as e:
            logger.exception(f"Card generation failed for child {child_id}: {e}")
            cards = []
        self.tracker.start_cycle(cards)
        return cards

    def debug_report(self, child_id: str, now: Optional[datetime] = None) -> DebugReport:
        """Run generation with full diagnostics. Does not start an impression cycle."""
        now = as_naive_utc(now or self.clock())
        _, report = self._run(child_id, now, with_report=True)
        return report

    def _run(
        self,
        child_id: str,
        now: datetime,
        with_report: bool = False,
    ) -> Tuple[List[CoachCard], Optional[DebugReport]]:
        snap = self.detector.snapshot(child_id, now)
        results = self.detector.evaluate(snap)
        child = self.provider.child_for(child_id)
        child_name = child.name if child else None

        report = None
        if with_report:
            report = DebugReport(
                child_id=child_id,
                child_name=child_name,
                generated_at=now,
                signals=[_outcome(r) for r in results],
                stats=self._stats(snap),
                cooldowns=[
                    CooldownInfo(template_id=t, entity_id=e, ends_at=ends)
                    for t, e, ends in self.cooldowns.active_cooldowns(child_id, now)
                ],
            )

        built = []
        for r in results:
            if r.signal is None:
                continue
            card = self.renderer.render(r.signal, snap.by_id, now, child_name)
            if card is None:
                if report:
                    report.drop(r.kind.value, DropReason.EVIDENCE_INVALID, r.entity_id)
                continue
            built.append(card)
        if report:
            report.built_cards = list(built)

        eligible = []
        for card in built:
            if self.cooldowns.is_suppressed(child_id, card.template_id, card.primary_entity_id, now):
                logger.debug(f"Card {card.id} suppressed by cooldown")
                if report:
                    ends_at = self.cooldowns.cooldown_ends_at(child_id, card.template_id, card.primary_entity_id)
                    report.drop(
                        card.template_id, DropReason.COOLDOWN_ACTIVE, card.primary_entity_id, card.id,
                        f"until {ends_at.isoformat()}" if ends_at else "",
                    )
                continue
            eligible.append(card)
        candidates = self._dedupe(eligible, report)

        def on_drop(card: CoachCard, reason: str) -> None:
            logger.debug(f"Card {card.id} dropped by safety rails: {reason}")
            if report:
                report.drop(card.template_id, DropReason(reason), card.primary_entity_id, card.id)

        selected = select_cards(candidates, on_drop=on_drop, **self.config.get_rail_config())
        if report:
            report.selected_cards = list(selected)

        logger.info(
            f"Generated {len(selected)} cards for child {child_id} "
            f"({len(built)} built, {len(candidates)} eligible)"
        )
        return selected, report

    def _dedupe(self, cards: List[CoachCard], report: Optional[DebugReport] = None) -> List[CoachCard]:
        """One card per primary entity: higher tier wins, then template id.

        Goals and behavior types are separate id spaces.
        """
        best: Dict[Tuple[bool, str], CoachCard] = {}
        unscoped = []
        for card in sorted(cards, key=lambda c: (c.priority.rank, c.template_id)):
            if card.primary_entity_id is None:
                unscoped.append(card)
                continue
            key = (card.template_id in GOAL_TEMPLATE_IDS, card.primary_entity_id)
            kept = best.get(key)
            if kept is None:
                best[key] = card
                continue
            logger.debug(f"Card {card.id} duplicates entity {card.primary_entity_id} of {kept.id}")
            if report:
                report.drop(
                    card.template_id, DropReason.DUPLICATE_ENTITY, card.primary_entity_id, card.id,
                    f"kept {kept.template_id}",
                )
        return list(best.values()) + unscoped

    def _stats(self, snap: EventSnapshot) -> DataStats:
        t = self.thresholds
        routine_ids = {
            bt.id for bt in snap.behavior_types.values()
            if bt.category is BehaviorCategory.ROUTINE_POSITIVE
        }
        routines = [e for e in snap.positives(t.recent_days) if e.behavior_type_id in routine_ids]
        return DataStats(
            events_14_days=len(snap.since(t.history_days)),
            positives_7_days=len(snap.positives(t.recent_days)),
            challenges_7_days=len(snap.challenges(t.recent_days)),
            routines_7_days=len(routines),
            has_active_goal=snap.goal is not None and snap.goal.is_active,
        )

    # ==================== IMPRESSIONS ====================

    def card_became_visible(self, card: CoachCard, at: Optional[datetime] = None) -> ImpressionState:
        return self.tracker.card_became_visible(card, at)

    def card_became_hidden(self, card: CoachCard, at: Optional[datetime] = None) -> ImpressionState:
        return self.tracker.card_became_hidden(card, at)

    def record_interaction(self, card: CoachCard, at: Optional[datetime] = None) -> ImpressionState:
        return self.tracker.record_interaction(card, at)

    def tick(self, at: Optional[datetime] = None) -> List[CoachCard]:
        return self.tracker.tick(at)

    def app_became_inactive(self, at: Optional[datetime] = None) -> None:
        self.tracker.app_became_inactive(at)

    def app_became_active(self, at: Optional[datetime] = None) -> None:
        self.tracker.app_became_active(at)

    def record_cards_displayed(self, cards: List[CoachCard], at: Optional[datetime] = None) -> None:
        """Commit cooldowns for cards the host knows were shown, bypassing dwell."""
        at = as_naive_utc(at or self.clock())
        for card in cards:
            self.cooldowns.commit(card.child_id, card.template_id, card.primary_entity_id, at)


def _outcome(result: DetectionResult) -> SignalOutcome:
    return SignalOutcome(
        kind=result.kind,
        triggered=result.triggered,
        reason=result.reason,
        entity_id=result.entity_id,
    )
