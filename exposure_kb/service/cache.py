from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

from .errors import CacheError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MINUTE = 60.0


@dataclass
class CacheEntry(Generic[T]):
    data: T
    timestamp: float
    ttl: float
    hits: int = 0


@dataclass
class CacheConfig:
    default_ttl: float = 5 * MINUTE
    max_size: int = 1000
    enable_stats: bool = True


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int
    hit_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {"hits": self.hits, "misses": self.misses, "size": self.size, "hitRate": self.hit_rate}


class CacheManager:
    """
    In-process TTL cache. Entries expire `ttl` seconds after insertion. When
    the cache is full, expired entries are purged first and then the entry
    with the oldest insertion timestamp is evicted (insertion order, not
    access order).

    Hit/miss counters are plain integers; under concurrent readers they are
    approximate, which is fine for statistics.
    """

    def __init__(self, config: Optional[CacheConfig] = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or CacheConfig()
        self._clock = clock
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._hits = 0
        self._misses = 0

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        try:
            entry_ttl = float(self.config.default_ttl if ttl is None else ttl)
        except (TypeError, ValueError) as exc:
            raise CacheError("set", exc) from exc
        if entry_ttl < 0:
            raise CacheError("set", ValueError(f"negative ttl {entry_ttl}"))

        if key not in self._entries and len(self._entries) >= self.config.max_size:
            self.clean_expired()
            if len(self._entries) >= self.config.max_size:
                self._evict_oldest()

        self._entries[key] = CacheEntry(data=data, timestamp=self._clock(), ttl=entry_ttl)

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self._record_miss()
            return None

        if self._is_expired(entry):
            self._entries.pop(key, None)
            self._record_miss()
            return None

        entry.hits += 1
        if self.config.enable_stats:
            self._hits += 1
        return entry.data

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not self._is_expired(entry)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def get_stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            size=len(self._entries),
            hit_rate=self._hits / total if total > 0 else 0.0,
        )

    def get_or_compute(self, key: str, compute: Callable[[], T], ttl: Optional[float] = None) -> T:
        cached = self.get(key)
        if cached is not None:
            return cached
        # Exceptions from compute propagate to the caller untouched.
        computed = compute()
        self.set(key, computed, ttl)
        return computed

    def set_many(self, entries: Iterable[Tuple[str, Any, Optional[float]]]) -> None:
        for key, data, ttl in entries:
            self.set(key, data, ttl)

    def get_many(self, keys: Iterable[str]) -> Dict[str, Optional[Any]]:
        return {key: self.get(key) for key in keys}

    def delete_many(self, keys: Iterable[str]) -> int:
        return sum(1 for key in list(keys) if self.delete(key))

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def clean_expired(self) -> int:
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %s expired cache entries", len(expired))
        return len(expired)

    def _evict_oldest(self) -> None:
        oldest_key: Optional[str] = None
        oldest_timestamp: Optional[float] = None
        for key, entry in self._entries.items():
            if oldest_timestamp is None or entry.timestamp < oldest_timestamp:
                oldest_key, oldest_timestamp = key, entry.timestamp
        if oldest_key is not None:
            del self._entries[oldest_key]
            logger.debug("Evicted oldest cache entry %s", oldest_key)

    def _is_expired(self, entry: CacheEntry[Any]) -> bool:
        return self._clock() - entry.timestamp > entry.ttl

    def _record_miss(self) -> None:
        if self.config.enable_stats:
            self._misses += 1

    @staticmethod
    def create_key(*parts: Any) -> str:
        return ":".join(str(part) for part in parts)

    @staticmethod
    def create_search_key(query: str, filters: Optional[Dict[str, Any]] = None) -> str:
        filter_string = "&".join(
            f"{name}={json.dumps(value, sort_keys=True)}" for name, value in sorted((filters or {}).items())
        )
        return f"{query}:{filter_string}"


OCCUPATION_PREFIX = "occupation:"
SEARCH_PREFIX = "search:"
VISUALIZATION_PREFIX = "viz:"
TABLE_PREFIX = "table:"

ALL_PREFIXES = (OCCUPATION_PREFIX, SEARCH_PREFIX, VISUALIZATION_PREFIX, TABLE_PREFIX)


class KnowledgeBaseCache(CacheManager):
    """
    Cache scoped to knowledge-base queries: prefixed keys with a TTL per kind
    of data, plus bulk prefix invalidation for knowledge-base reloads.
    """

    OCCUPATION_RISK_TTL = 10 * MINUTE
    SEARCH_TTL = 5 * MINUTE
    VISUALIZATION_TTL = 15 * MINUTE
    TABLE_TTL = 30 * MINUTE

    def __init__(self, config: Optional[CacheConfig] = None, clock: Callable[[], float] = time.monotonic):
        super().__init__(config or CacheConfig(default_ttl=10 * MINUTE, max_size=500), clock=clock)

    # Key builders
    @staticmethod
    def occupation_risk_key(identifier: str) -> str:
        return f"{OCCUPATION_PREFIX}risk:{identifier.strip().lower()}"

    @staticmethod
    def top_occupations_key(limit: int) -> str:
        return f"{OCCUPATION_PREFIX}top:{limit}"

    @staticmethod
    def search_key(query: str, filters: Optional[Dict[str, Any]] = None) -> str:
        return SEARCH_PREFIX + CacheManager.create_search_key(query.strip().lower(), filters)

    @staticmethod
    def visualization_key(chart_type: str) -> str:
        return f"{VISUALIZATION_PREFIX}{chart_type}"

    @staticmethod
    def table_key(table_id: str) -> str:
        return f"{TABLE_PREFIX}{table_id}"

    # Typed accessors
    def cache_occupation_risk(self, identifier: str, data: Any) -> None:
        self.set(self.occupation_risk_key(identifier), data, self.OCCUPATION_RISK_TTL)

    def get_cached_occupation_risk(self, identifier: str) -> Optional[Any]:
        return self.get(self.occupation_risk_key(identifier))

    def cache_search_results(self, query: str, filters: Optional[Dict[str, Any]], results: Any) -> None:
        self.set(self.search_key(query, filters), results, self.SEARCH_TTL)

    def get_cached_search_results(self, query: str, filters: Optional[Dict[str, Any]]) -> Optional[Any]:
        return self.get(self.search_key(query, filters))

    def cache_visualization_data(self, chart_type: str, data: Any) -> None:
        self.set(self.visualization_key(chart_type), data, self.VISUALIZATION_TTL)

    def get_cached_visualization_data(self, chart_type: str) -> Optional[Any]:
        return self.get(self.visualization_key(chart_type))

    def cache_table_data(self, table_id: str, data: Any) -> None:
        self.set(self.table_key(table_id), data, self.TABLE_TTL)

    def get_cached_table_data(self, table_id: str) -> Optional[Any]:
        return self.get(self.table_key(table_id))

    # Invalidation
    def invalidate_prefixes(self, *prefixes: str) -> int:
        doomed = [key for key in self.keys() if key.startswith(prefixes)]
        return self.delete_many(doomed)

    def invalidate_occupation_caches(self) -> int:
        return self.invalidate_prefixes(OCCUPATION_PREFIX, SEARCH_PREFIX)

    def invalidate_visualization_caches(self) -> int:
        return self.invalidate_prefixes(VISUALIZATION_PREFIX)

    def invalidate_all(self) -> int:
        return self.invalidate_prefixes(*ALL_PREFIXES)
