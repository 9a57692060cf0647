"""
Bounded cache of module metadata keyed by module key.

Module rows (names, descriptions, display order) change rarely, but they do
change, so entries expire after a TTL and can be invalidated explicitly.
"""
from typing import Iterable, Optional

from cachetools import TTLCache

from app.core import config
from app.features.permissions.directory import ModuleRecord
from app.utils import get_logger


log = get_logger(__name__)


class ModuleMetadataCache:
    """
    Usage:
        cache = ModuleMetadataCache(max_size=64, ttl=300)
        found, missing = cache.get_many(["students", "projections"])
        cache.put_many(await directory.list_modules(keys=missing))
    """

    def __init__(
        self,
        max_size: int = config.MODULE_CACHE_MAX_SIZE,
        ttl: int = config.MODULE_CACHE_TTL,
    ):
        self._cache: TTLCache = TTLCache(maxsize=max_size, ttl=ttl)

    def get(self, key: str) -> Optional[ModuleRecord]:
        return self._cache.get(key)

    def get_many(self, keys: Iterable[str]) -> tuple[dict[str, ModuleRecord], list[str]]:
        """Split keys into cached records and keys that still need loading."""
        found: dict[str, ModuleRecord] = {}
        missing: list[str] = []
        for key in keys:
            record = self._cache.get(key)
            if record is None:
                missing.append(key)
            else:
                found[key] = record
        return found, missing

    def put_many(self, records: Iterable[ModuleRecord]) -> None:
        for record in records:
            self._cache[record.key] = record

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one entry, or everything when no key is given."""
        if key is None:
            self._cache.clear()
            log.debug("Module metadata cache cleared")
        else:
            self._cache.pop(key, None)

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return key in self._cache
