# src/sigstruct/cache/capability_cache.py
"""
CapabilityCache: read-through TTL cache for capability probes and
compiled schemas.

Two namespaces with independent TTLs:

- ``capability``: keyed by provider, model and probe; long-lived (24h)
- ``schema``: keyed by descriptor fingerprint, provider, format and any
  extra cache parameters; short-lived (1h)

Entries expire lazily when read; there is no sweeper. All access to the
table goes through one lock. The compute callback runs outside the lock,
so two concurrent misses may both compute and the later write wins.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_CAPABILITY_TTL = 24 * 60 * 60
DEFAULT_SCHEMA_TTL = 60 * 60

CAPABILITY = "capability"
SCHEMA = "schema"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


def capability_key(provider: str, model: str, probe: str) -> str:
    return f"{CAPABILITY}:{provider.lower()}:{model}:{probe}"


def schema_key(
    fingerprint: str,
    provider: Optional[str],
    schema_format: str,
    cache_params: Optional[Mapping[str, Any]] = None,
) -> str:
    key = f"{SCHEMA}:{(provider or 'generic').lower()}:{schema_format}:{fingerprint}"
    if cache_params:
        params = ",".join(f"{k}={cache_params[k]}" for k in sorted(cache_params))
        key = f"{key}:{params}"
    return key


class CapabilityCache:
    """
    Explicitly injected cache shared by the selector and the pipeline.

    Args:
        capability_ttl: Seconds a capability probe result stays valid
        schema_ttl: Seconds a compiled schema stays valid
        clock: Monotonic time source (override in tests)
    """

    def __init__(
        self,
        capability_ttl: float = DEFAULT_CAPABILITY_TTL,
        schema_ttl: float = DEFAULT_SCHEMA_TTL,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.capability_ttl = capability_ttl
        self.schema_ttl = schema_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def fetch_capability(
        self,
        provider: str,
        model: str,
        probe: str,
        compute: Callable[[], bool],
    ) -> bool:
        """Return the cached probe result, computing it on a miss."""
        key = capability_key(provider, model, probe)
        return bool(self._fetch(key, self.capability_ttl, compute))

    def fetch_schema(
        self,
        fingerprint: str,
        provider: Optional[str],
        schema_format: str,
        compute: Callable[[], Any],
        cache_params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Return the cached schema document, compiling it on a miss."""
        key = schema_key(fingerprint, provider, schema_format, cache_params)
        return self._fetch(key, self.schema_ttl, compute)

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for *key*, or None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expired(self._clock()):
                del self._entries[key]
                return None
            return entry

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> Dict[str, int]:
        with self._lock:
            now = self._clock()
            live = [k for k, e in self._entries.items() if not e.expired(now)]
            return {
                "capability_entries": sum(1 for k in live if k.startswith(f"{CAPABILITY}:")),
                "schema_entries": sum(1 for k in live if k.startswith(f"{SCHEMA}:")),
                "hits": self._hits,
                "misses": self._misses,
            }

    def _fetch(self, key: str, ttl: float, compute: Callable[[], Any]) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if not entry.expired(self._clock()):
                    self._hits += 1
                    logger.debug("Cache hit: %s", key)
                    return entry.value
                del self._entries[key]
            self._misses += 1

        logger.debug("Cache miss: %s", key)
        value = compute()

        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)
        return value
