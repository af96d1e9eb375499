"""
Exception types for the coach engine
"""


class CoachError(Exception):
    """Base class for coach engine errors."""


class EvidenceError(CoachError):
    """A signal or card failed the evidence ownership/window check."""

    def __init__(self, template_id: str, reason: str):
        self.template_id = template_id
        self.reason = reason
        super().__init__(f"{template_id}: {reason}")


class CooldownStoreError(CoachError):
    """The cooldown store could not be written."""


class ConfigError(CoachError):
    """Invalid engine configuration (thresholds file, env values)."""
