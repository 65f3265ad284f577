# src/sigstruct/cache/__init__.py
from .capability_cache import (
    CacheEntry,
    CapabilityCache,
    capability_key,
    schema_key,
)

__all__ = ["CacheEntry", "CapabilityCache", "capability_key", "schema_key"]
