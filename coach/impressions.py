"""
Card impression tracking

Cooldowns are committed only when a card was genuinely seen:
- visible for at least the dwell threshold, or
- the user interacted with it (tap, evidence sheet)

States per card, per generation cycle:
    rendered -> visible -> committed
    rendered -> visible -> hidden      (left view before the dwell threshold)
Committed and hidden are terminal until the next cycle starts.

Dwell time only accrues while the app is active. Time spent in the
background never counts toward the threshold.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from loguru import logger

from .cooldowns import CooldownStore
from .errors import CooldownStoreError
from .models import CoachCard
from .utils.dates import as_naive_utc, utc_now


class ImpressionState(str, Enum):
    RENDERED = "rendered"
    VISIBLE = "visible"
    COMMITTED = "committed"
    HIDDEN = "hidden"


TERMINAL_STATES = {ImpressionState.COMMITTED, ImpressionState.HIDDEN}


@dataclass
class Impression:
    card: CoachCard
    state: ImpressionState = ImpressionState.RENDERED
    # None while the app is inactive; dwell so far is kept in accrued
    visible_since: Optional[datetime] = None
    accrued: timedelta = field(default_factory=timedelta)
    committed_at: Optional[datetime] = None
    interacted: bool = False

    def dwell_at(self, at: datetime) -> timedelta:
        if self.visible_since is None:
            return self.accrued
        return self.accrued + max(timedelta(0), at - self.visible_since)


class ImpressionTracker:
    """Session-scoped observer of card visibility that writes back cooldowns."""

    def __init__(
        self,
        store: CooldownStore,
        dwell_seconds: float = 2.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.dwell = timedelta(seconds=dwell_seconds)
        self.clock = clock
        self._lock = threading.Lock()
        self._impressions: Dict[str, Impression] = {}
        self._active = True

    @property
    def app_active(self) -> bool:
        return self._active

    def start_cycle(self, cards: Iterable[CoachCard]) -> None:
        """Begin a new generation cycle; earlier per-card state is discarded."""
        with self._lock:
            self._impressions = {card.id: Impression(card) for card in cards}

    def reset(self) -> None:
        with self._lock:
            self._impressions.clear()

    def state_of(self, card: CoachCard) -> Optional[ImpressionState]:
        with self._lock:
            imp = self._impressions.get(card.id)
            return imp.state if imp else None

    def _now(self, at: Optional[datetime]) -> datetime:
        return as_naive_utc(at or self.clock())

    def _get(self, card: CoachCard) -> Impression:
        imp = self._impressions.get(card.id)
        if imp is None:
            # Card shown without going through generate_cards in this session
            imp = Impression(card)
            self._impressions[card.id] = imp
        return imp

    # ==================== APP STATE ====================

    def app_became_inactive(self, at: Optional[datetime] = None) -> None:
        """Pause dwell for every visible card."""
        at = self._now(at)
        with self._lock:
            if not self._active:
                return
            self._active = False
            for imp in self._impressions.values():
                if imp.state is ImpressionState.VISIBLE and imp.visible_since is not None:
                    imp.accrued = imp.dwell_at(at)
                    imp.visible_since = None
        logger.debug("App inactive, dwell paused")

    def app_became_active(self, at: Optional[datetime] = None) -> None:
        """Resume dwell for every visible card."""
        at = self._now(at)
        with self._lock:
            if self._active:
                return
            self._active = True
            for imp in self._impressions.values():
                if imp.state is ImpressionState.VISIBLE:
                    imp.visible_since = at
        logger.debug("App active, dwell resumed")

    # ==================== CALLBACKS ====================

    def card_became_visible(self, card: CoachCard, at: Optional[datetime] = None) -> ImpressionState:
        at = self._now(at)
        with self._lock:
            imp = self._get(card)
            if imp.state is ImpressionState.RENDERED:
                imp.state = ImpressionState.VISIBLE
                imp.visible_since = at if self._active else None
            return imp.state

    def card_became_hidden(self, card: CoachCard, at: Optional[datetime] = None) -> ImpressionState:
        at = self._now(at)
        with self._lock:
            imp = self._get(card)
            if imp.state is ImpressionState.VISIBLE:
                if imp.dwell_at(at) >= self.dwell:
                    self._commit(imp, at)
                else:
                    imp.state = ImpressionState.HIDDEN
                    logger.debug(f"Card {card.id} hidden before dwell threshold, no cooldown")
            elif imp.state is ImpressionState.RENDERED:
                imp.state = ImpressionState.HIDDEN
            return imp.state

    def record_interaction(self, card: CoachCard, at: Optional[datetime] = None) -> ImpressionState:
        """Tap or evidence view: commits immediately, whatever the dwell time.

        A card already committed by dwell gets its interaction stamped once.
        """
        at = self._now(at)
        with self._lock:
            imp = self._get(card)
            if imp.state not in TERMINAL_STATES:
                self._commit(imp, at, interacted=True)
            elif imp.state is ImpressionState.COMMITTED and not imp.interacted:
                imp.interacted = True
                try:
                    self.store.touch_interaction(card.child_id, card.template_id, card.primary_entity_id, at)
                except CooldownStoreError as e:
                    logger.error(f"Failed to persist interaction for card {card.id}: {e}")
            return imp.state

    def tick(self, at: Optional[datetime] = None) -> List[CoachCard]:
        """Commit every visible card that has passed the dwell threshold.

        Does nothing while the app is inactive.
        """
        at = self._now(at)
        committed = []
        with self._lock:
            if not self._active:
                return committed
            for imp in self._impressions.values():
                if imp.state is ImpressionState.VISIBLE and imp.dwell_at(at) >= self.dwell:
                    self._commit(imp, at)
                    committed.append(imp.card)
        return committed

    def _commit(self, imp: Impression, at: datetime, interacted: bool = False) -> None:
        card = imp.card
        imp.state = ImpressionState.COMMITTED
        imp.committed_at = at
        imp.interacted = interacted
        try:
            self.store.commit(card.child_id, card.template_id, card.primary_entity_id, at, interacted=interacted)
        except CooldownStoreError as e:
            logger.error(f"Failed to persist cooldown for card {card.id}: {e}")
