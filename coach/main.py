"""
Command line entry point: coach-report

Loads a JSON fixture of children, behavior types, events and goals, runs the
engine for one child and prints the cards or the full debug report.
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError

from .config import Config
from .cooldowns import CooldownStore
from .engine import CoachingEngine
from .errors import ConfigError
from .models import BehaviorEvent, BehaviorType, Child, CoachCard, Goal
from .provider import InMemoryDataProvider
from .utils.dates import utc_now


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None, sink=sys.stdout):
    """Setup logging configuration."""
    level = level or Config.LOG_LEVEL
    logger.remove()

    logger.add(
        sink,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
    )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level=level,
        )


def load_fixture(path: str) -> InMemoryDataProvider:
    """Build an in-memory provider from a JSON fixture.

    Expected keys: children, behavior_types, events, goals (all optional lists).
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Fixture {path} must contain a JSON object")

    provider = InMemoryDataProvider(
        events=[BehaviorEvent(**e) for e in data.get("events", [])],
        behavior_types=[BehaviorType(**bt) for bt in data.get("behavior_types", [])],
        goals=[Goal(**g) for g in data.get("goals", [])],
        children=[Child(**c) for c in data.get("children", [])],
    )
    logger.info(
        f"Loaded fixture {path}: {len(data.get('events', []))} events, "
        f"{len(data.get('behavior_types', []))} behavior types, {len(data.get('goals', []))} goals"
    )
    return provider


def format_cards(cards: List[CoachCard]) -> str:
    if not cards:
        return "No cards right now."
    lines = []
    for i, card in enumerate(cards, 1):
        lines.append(f"{i}. [{card.priority.value}] {card.title}")
        lines.append(f"   {card.one_liner}")
        for step in card.steps:
            lines.append(f"   - {step}")
        lines.append(f"   Why: {card.why_summary}")
        lines.append(f"   Evidence: {len(card.evidence_event_ids)} moments over {card.evidence_window} days")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coach-report",
        description="Generate coach cards for one child from a JSON fixture",
    )
    parser.add_argument("--events", required=True, help="JSON fixture with children, behavior_types, events, goals")
    parser.add_argument("--child", required=True, help="Child id")
    parser.add_argument("--now", help="Evaluation time, ISO 8601 (default: current time)")
    parser.add_argument("--cooldowns", help="Cooldown store JSON file (default: in-memory only)")
    parser.add_argument("--locale", default=None, help="Copy locale (en, pt_br)")
    parser.add_argument("--debug", action="store_true", help="Print the full debug report instead of cards")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text")
    parser.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL or INFO)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for coach-report."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, sink=sys.stderr)

    try:
        now = datetime.fromisoformat(args.now) if args.now else utc_now()
        provider = load_fixture(args.events)
        engine = CoachingEngine(
            provider,
            cooldowns=CooldownStore(args.cooldowns) if args.cooldowns else CooldownStore(None),
            locale=args.locale,
        )
    except (OSError, ValueError, ValidationError, ConfigError) as e:
        logger.error(f"Could not start coach report: {e}")
        return 1

    if args.debug:
        report = engine.debug_report(args.child, now)
        print(report.model_dump_json(indent=2) if args.json else report.formatted_report())
        return 0

    cards = engine.generate_cards(args.child, now)
    if args.json:
        print(json.dumps([c.model_dump(mode="json") for c in cards], indent=2))
    else:
        print(format_cards(cards))
    return 0


if __name__ == "__main__":
    sys.exit(main())
