"""
Safety rails - caps how many cards of each tier appear together.

A pure reducer over candidate cards; nothing here knows about signals or
cooldowns, so caps can be tuned and tested on their own.
"""

from typing import Callable, Dict, List, Optional

from .models import CoachCard, PriorityTier

DropCallback = Callable[[CoachCard, str], None]


def card_sort_key(card: CoachCard):
    """Entity-scoped first, newest evidence first, then template id and card id."""
    latest = card.latest_evidence_at
    recency = -latest.timestamp() if latest is not None else float("inf")
    return (0 if card.is_entity_scoped else 1, recency, card.template_id, card.id)


def select_cards(
    cards: List[CoachCard],
    max_cards: int = 5,
    max_risk: int = 1,
    max_improvement: int = 2,
    on_drop: Optional[DropCallback] = None,
) -> List[CoachCard]:
    """Apply tier caps and ordering to validated, non-suppressed candidates.

    Output order is risk, then improvement, then celebration. Cards that do
    not fit are omitted for this cycle (reported through `on_drop`).
    """
    caps: Dict[PriorityTier, int] = {
        PriorityTier.RISK: max_risk,
        PriorityTier.IMPROVEMENT: max_improvement,
        PriorityTier.CELEBRATION: max_cards,
    }
    drop_reasons = {
        PriorityTier.RISK: "safety_rail_risk",
        PriorityTier.IMPROVEMENT: "safety_rail_improvement",
        PriorityTier.CELEBRATION: "ranking_cutoff",
    }

    selected: List[CoachCard] = []
    for tier in sorted(PriorityTier, key=lambda t: t.rank):
        tier_cards = sorted((c for c in cards if c.priority is tier), key=card_sort_key)
        taken = 0
        for card in tier_cards:
            if len(selected) >= max_cards:
                if on_drop:
                    on_drop(card, "ranking_cutoff")
            elif taken >= caps[tier]:
                if on_drop:
                    on_drop(card, drop_reasons[tier])
            else:
                selected.append(card)
                taken += 1
    return selected


def tier_counts(cards: List[CoachCard]) -> Dict[PriorityTier, int]:
    counts = {tier: 0 for tier in PriorityTier}
    for card in cards:
        counts[card.priority] += 1
    return counts
