"""
Configuration management for the coach engine
Centralizes environment variable parsing and provides typed configuration
"""

import os
from typing import Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


class Config:
    """Centralized configuration for the coach engine"""

    # Safety rails
    MAX_CARDS: int = int(os.getenv("COACH_MAX_CARDS", "5"))
    MAX_RISK_CARDS: int = int(os.getenv("COACH_MAX_RISK_CARDS", "1"))
    MAX_IMPROVEMENT_CARDS: int = int(os.getenv("COACH_MAX_IMPROVEMENT_CARDS", "2"))

    # Impressions
    DWELL_SECONDS: float = float(os.getenv("COACH_DWELL_SECONDS", "2.0"))

    # Cards
    CARD_TTL_HOURS: int = int(os.getenv("COACH_CARD_TTL_HOURS", "24"))
    LOCALE: str = os.getenv("COACH_LOCALE", "en")

    # Storage
    COOLDOWN_PATH: str = os.getenv("COACH_COOLDOWN_PATH", "data/cooldowns.json")
    COOLDOWN_PERSIST: bool = _env_bool("COACH_COOLDOWN_PERSIST", "1")
    THRESHOLDS_PATH: Optional[str] = os.getenv("COACH_THRESHOLDS_PATH") or None

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls) -> bool:
        """Validate configuration values"""
        if cls.MAX_CARDS < 1:
            return False
        if cls.MAX_RISK_CARDS < 0 or cls.MAX_IMPROVEMENT_CARDS < 0:
            return False
        if cls.DWELL_SECONDS < 0:
            return False
        return True

    @classmethod
    def get_rail_config(cls) -> dict:
        """Get safety rail configuration as dict"""
        return {
            "max_cards": cls.MAX_CARDS,
            "max_risk": cls.MAX_RISK_CARDS,
            "max_improvement": cls.MAX_IMPROVEMENT_CARDS,
        }


# Global config instance
config = Config()
