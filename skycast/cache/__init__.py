"""Cache tiers package."""

from .cache_tier_manager import CacheTierManager, CacheEntry, DEFAULT_TTL_MS
from .durable_store import (
    DurableStore,
    DurableRecord,
    DurableTierError,
    JsonFileDurableStore,
    SqliteDurableStore,
)

__all__ = [
    'CacheTierManager',
    'CacheEntry',
    'DEFAULT_TTL_MS',
    'DurableStore',
    'DurableRecord',
    'DurableTierError',
    'JsonFileDurableStore',
    'SqliteDurableStore',
]
