"""
Debug report for a single generation run

Captures every detector's outcome, what was built, what was dropped and why,
and the active cooldowns, so a developer can answer "why didn't I see card X?".
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .models import CoachCard, PriorityTier, SignalKind


class DropReason(str, Enum):
    EVIDENCE_INVALID = "evidence_invalid"
    DUPLICATE_ENTITY = "duplicate_entity"
    COOLDOWN_ACTIVE = "cooldown_active"
    SAFETY_RAIL_RISK = "safety_rail_risk"
    SAFETY_RAIL_IMPROVEMENT = "safety_rail_improvement"
    RANKING_CUTOFF = "ranking_cutoff"


class SignalOutcome(BaseModel):
    kind: SignalKind
    triggered: bool
    reason: str
    entity_id: Optional[str] = None


class DroppedCard(BaseModel):
    template_id: str
    entity_id: Optional[str] = None
    card_id: Optional[str] = None
    reason: DropReason
    detail: str = ""


class CooldownInfo(BaseModel):
    template_id: str
    entity_id: str
    ends_at: datetime


class DataStats(BaseModel):
    events_14_days: int = 0
    positives_7_days: int = 0
    challenges_7_days: int = 0
    routines_7_days: int = 0
    has_active_goal: bool = False


class DebugReport(BaseModel):
    child_id: str
    child_name: Optional[str] = None
    generated_at: datetime
    signals: List[SignalOutcome] = Field(default_factory=list)
    built_cards: List[CoachCard] = Field(default_factory=list)
    dropped: List[DroppedCard] = Field(default_factory=list)
    selected_cards: List[CoachCard] = Field(default_factory=list)
    cooldowns: List[CooldownInfo] = Field(default_factory=list)
    stats: DataStats = Field(default_factory=DataStats)

    @property
    def triggered_signals(self) -> List[SignalOutcome]:
        return [s for s in self.signals if s.triggered]

    @property
    def cards_summary(self) -> str:
        counts = {tier: 0 for tier in PriorityTier}
        for card in self.selected_cards:
            counts[card.priority] += 1
        return ", ".join(f"{tier.value}={n}" for tier, n in counts.items())

    def drop(
        self,
        template_id: str,
        reason: DropReason,
        entity_id: Optional[str] = None,
        card_id: Optional[str] = None,
        detail: str = "",
    ) -> None:
        self.dropped.append(DroppedCard(
            template_id=template_id,
            entity_id=entity_id,
            card_id=card_id,
            reason=reason,
            detail=detail,
        ))

    def formatted_report(self) -> str:
        name = f" ({self.child_name})" if self.child_name else ""
        lines = [
            "=== COACH CARDS DEBUG REPORT ===",
            f"Child: {self.child_id}{name}",
            f"Generated: {self.generated_at.isoformat()}",
            "",
            "--- DATA ---",
            f"Events (14 days): {self.stats.events_14_days}",
            f"Positives (7 days): {self.stats.positives_7_days}",
            f"Challenges (7 days): {self.stats.challenges_7_days}",
            f"Routines (7 days): {self.stats.routines_7_days}",
            f"Active goal: {'yes' if self.stats.has_active_goal else 'no'}",
            "",
            f"--- SIGNALS ({len(self.triggered_signals)}/{len(self.signals)} triggered) ---",
        ]
        for s in self.signals:
            mark = "+" if s.triggered else "-"
            entity = f" [{s.entity_id}]" if s.entity_id else ""
            lines.append(f"{mark} {s.kind.value}{entity}: {s.reason}")

        lines += ["", f"--- BUILT CARDS ({len(self.built_cards)}) ---"]
        for card in self.built_cards:
            lines.append(f"* {card.id} ({card.priority.value}) {card.title}")

        lines += ["", f"--- DROPPED ({len(self.dropped)}) ---"]
        for d in self.dropped:
            entity = f" [{d.entity_id}]" if d.entity_id else ""
            detail = f": {d.detail}" if d.detail else ""
            lines.append(f"x {d.template_id}{entity} {d.reason.value}{detail}")

        lines += ["", f"--- SELECTED ({self.cards_summary}) ---"]
        for i, card in enumerate(self.selected_cards, 1):
            lines.append(f"{i}. [{card.priority.value}] {card.title}")
            lines.append(f"   {card.one_liner}")

        lines += ["", f"--- COOLDOWNS ({len(self.cooldowns)}) ---"]
        for c in self.cooldowns:
            lines.append(f"{c.template_id}:{c.entity_id} until {c.ends_at.isoformat()}")

        return "\n".join(lines)
