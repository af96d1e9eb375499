import hashlib
import json
from typing import Any, Mapping, Optional


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render(template: str, vars: Optional[Mapping[str, Any]] = None) -> str:
    """Lightweight {var} templating; unknown placeholders are left as-is."""
    vars = vars or {}
    safe = _KeepMissing({k: str(v) for k, v in vars.items() if v is not None})
    return template.format_map(safe)


def stable_digest(payload: Any, length: int = 12) -> str:
    """Short SHA1 of a JSON payload with sorted keys; same input, same digest."""
    s = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha1(s.encode("utf-8")).hexdigest()[:length]
