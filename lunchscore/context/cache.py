from __future__ import annotations

import hashlib
import json
import time
from typing import Any, Callable

_DEFAULT_TTL = 1800  # 30 minutes, the context freshness window


def make_cache_key(key_dict: dict) -> str:
    normalized = json.dumps(key_dict, sort_keys=True, default=str)
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


class ContextCache:
    """TTL cache for generated contexts.

    One instance per service; nothing here is module-global so tests and
    concurrent apps do not share hit counters.
    """

    def __init__(
        self,
        ttl: float = _DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, dict[str, Any]] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key_dict: dict) -> Any | None:
        key = make_cache_key(key_dict)
        entry = self._entries.get(key)
        if entry and self._clock() - entry["created_at"] < self._ttl:
            self._hits += 1
            return entry["value"]
        if entry:
            del self._entries[key]
        self._misses += 1
        return None

    def set(self, key_dict: dict, value: Any) -> None:
        now = self._clock()
        # Keys embed the live position, so stale keys are rarely read again
        self._evict_expired(now)
        key = make_cache_key(key_dict)
        self._entries[key] = {"value": value, "created_at": now}

    def _evict_expired(self, now: float) -> None:
        expired = [
            k for k, e in self._entries.items() if now - e["created_at"] >= self._ttl
        ]
        for k in expired:
            del self._entries[k]

    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0
