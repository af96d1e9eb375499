"""
Cooldown store - when each card template was last genuinely shown per child

Generation only reads from it; impressions write to it. Reads fail open so
a damaged file never hides cards forever.
"""

import json
import os
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from loguru import logger

from .errors import CooldownStoreError
from .models import CardTemplate, CooldownRecord, SignalKind
from .templates import CARD_TEMPLATES, template_by_id
from .utils.dates import as_naive_utc

NO_ENTITY = "none"


def cooldown_key(template_id: str, entity_id: Optional[str]) -> str:
    return f"{template_id}:{entity_id or NO_ENTITY}"


class CooldownStore:
    """Per-child map of (template, entity) -> last committed display.

    File layout: {child_id: {"template_id:entity_id|none": {"last_committed_at": iso,
    "last_interacted_at": iso|null}}}. Pass path=None to keep state in memory only.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = "data/cooldowns.json",
        templates: Optional[Mapping[SignalKind, CardTemplate]] = None,
        retention_days: int = 30,
    ):
        self.path = Path(path) if path else None
        self.templates = templates if templates is not None else CARD_TEMPLATES
        self.retention = timedelta(days=retention_days)
        self._lock = threading.RLock()
        self._data: Optional[Dict[str, Dict[str, Any]]] = None
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> Dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception as e:
            logger.error(f"Error reading cooldowns file {self.path}: {e}")
            return {}
        # Safety check: ensure data is a dictionary
        if not isinstance(data, dict):
            logger.warning(f"Cooldowns file contains non-dict data: {type(data)}, starting empty")
            return {}
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        if self.path is None:
            return
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise CooldownStoreError(f"Could not write cooldowns to {self.path}: {e}") from e

    def _records(self) -> Dict[str, Dict[str, Any]]:
        """The cached store contents, loaded from disk on first use."""
        if self._data is None:
            self._data = self._read()
            logger.info(f"Loaded cooldowns for {len(self._data)} children")
        return self._data

    def invalidate_cache(self) -> None:
        with self._lock:
            self._data = None

    # ==================== READS ====================

    def record_for(self, child_id: str, template_id: str, entity_id: Optional[str]) -> Optional[CooldownRecord]:
        """The stored record, or None when absent or malformed."""
        with self._lock:
            child = self._records().get(child_id)
            raw = child.get(cooldown_key(template_id, entity_id)) if isinstance(child, dict) else None
        if raw is None:
            return None
        try:
            return CooldownRecord(**raw)
        except Exception as e:
            logger.warning(f"Malformed cooldown record {child_id}/{cooldown_key(template_id, entity_id)}: {e}")
            return None

    def cooldown_ends_at(self, child_id: str, template_id: str, entity_id: Optional[str]) -> Optional[datetime]:
        template = template_by_id(template_id, self.templates)
        record = self.record_for(child_id, template_id, entity_id)
        if template is None or record is None:
            return None
        return record.last_committed_at + template.cooldown

    def is_suppressed(self, child_id: str, template_id: str, entity_id: Optional[str], now: datetime) -> bool:
        """True iff a committed record is still inside the template's cooldown.

        Urgency-override templates are never suppressed.
        """
        now = as_naive_utc(now)
        template = template_by_id(template_id, self.templates)
        if template is None or template.urgency_override:
            return False
        ends_at = self.cooldown_ends_at(child_id, template_id, entity_id)
        if ends_at is None:
            return False
        try:
            return now < ends_at
        except TypeError as e:
            # naive vs aware timestamps; fail open
            logger.warning(f"Uncomparable cooldown timestamp for {template_id}: {e}")
            return False

    def active_cooldowns(self, child_id: str, now: datetime) -> List[Tuple[str, str, datetime]]:
        """(template_id, entity_id, ends_at) for every cooldown still running."""
        now = as_naive_utc(now)
        with self._lock:
            child = self._records().get(child_id)
            keys = sorted(child.keys()) if isinstance(child, dict) else []
        active = []
        for key in keys:
            template_id, _, entity_id = key.partition(":")
            entity = None if entity_id == NO_ENTITY else entity_id
            ends_at = self.cooldown_ends_at(child_id, template_id, entity)
            try:
                if ends_at is not None and ends_at > now:
                    active.append((template_id, entity_id, ends_at))
            except TypeError:
                continue
        return active

    # ==================== WRITES ====================

    def commit(
        self,
        child_id: str,
        template_id: str,
        entity_id: Optional[str],
        now: datetime,
        interacted: bool = False,
    ) -> CooldownRecord:
        """Upsert the last committed display for (template, entity)."""
        now = as_naive_utc(now)
        with self._lock:
            data = self._records()
            child = data.get(child_id)
            if not isinstance(child, dict):
                child = {}

            key = cooldown_key(template_id, entity_id)
            previous = self.record_for(child_id, template_id, entity_id)
            record = CooldownRecord(
                last_committed_at=now,
                last_interacted_at=now if interacted else (previous.last_interacted_at if previous else None),
            )
            child[key] = record.model_dump(mode="json")
            data[child_id] = self._prune(child, now)
            self._write(data)

        logger.info(f"Committed cooldown {child_id}/{key} at {now.isoformat()}")
        return record

    def touch_interaction(
        self,
        child_id: str,
        template_id: str,
        entity_id: Optional[str],
        at: datetime,
    ) -> CooldownRecord:
        """Stamp an interaction on an existing record without moving its commit time.

        With no record on file this is a regular interacted commit.
        """
        at = as_naive_utc(at)
        with self._lock:
            previous = self.record_for(child_id, template_id, entity_id)
            if previous is None:
                return self.commit(child_id, template_id, entity_id, at, interacted=True)

            data = self._records()
            key = cooldown_key(template_id, entity_id)
            record = CooldownRecord(last_committed_at=previous.last_committed_at, last_interacted_at=at)
            data[child_id][key] = record.model_dump(mode="json")
            self._write(data)

        logger.info(f"Recorded interaction {child_id}/{key} at {at.isoformat()}")
        return record

    def _prune(self, child: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        kept = {}
        cutoff = now - self.retention
        for key, raw in child.items():
            try:
                record = CooldownRecord(**raw)
                if record.last_committed_at > cutoff:
                    kept[key] = raw
            except Exception:
                logger.debug(f"Pruning unreadable cooldown record {key}")
        return kept

    def clear(self, child_id: Optional[str] = None) -> None:
        """Clear all cooldowns, or only one child's."""
        with self._lock:
            data = self._records()
            if child_id is None:
                data.clear()
            else:
                data.pop(child_id, None)
            self._write(data)
        logger.info(f"Cleared cooldowns for {child_id or 'all children'}")
