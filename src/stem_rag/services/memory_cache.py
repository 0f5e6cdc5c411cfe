# src/stem_rag/services/memory_cache.py
"""
Bounded in-memory key/value cache.

Used for exact-key caching outside the semantic path: visualization results,
document fetches. Entries expire after ``ttl`` seconds and each namespace holds
at most ``max_size`` entries (and, optionally, ``max_memory_size`` approximate
bytes). When a namespace is full the oldest entry of that namespace is evicted.

Entries are keyed by ``(namespace, key)``, so a view's keys can never collide
with the parent's keys or with another view's keys, whatever characters they
contain.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
import json
import time

from ..utils.monitoring import logger, cache_hits, cache_misses, cache_evictions, cache_size

# Size assumed for values that can't be serialized
FALLBACK_SIZE = 1000

# Path of view prefixes; the root cache is ()
Namespace = Tuple[str, ...]
ROOT: Namespace = ()


def estimate_size(value: Any) -> int:
    """Approximate size of value as the length of its JSON form"""
    try:
        return len(json.dumps(value))
    except (TypeError, ValueError, RecursionError):
        return FALLBACK_SIZE


def namespace_label(namespace: Namespace) -> str:
    return ":".join(namespace)


@dataclass
class CacheItem:
    value: Any
    inserted_at: float
    size: int


class MemoryCache:
    """
    TTL and size bounded cache.

    ``namespace(prefix)`` returns a view over the same store. Capacity is
    accounted per namespace and eviction only removes entries of the namespace
    being written, so one view filling up never evicts another view's entries.
    ``max_size`` and ``max_memory_size`` are therefore per-namespace limits; the
    total held by the store is bounded by the number of namespaces in use.

    Nothing here raises to the caller; a degraded cache just misses.
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl: float = 5 * 60,
        max_memory_size: Optional[int] = None,
        name: str = "memory",
        clock: Callable[[], float] = time.monotonic
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        self.max_size = max_size
        self.ttl = ttl
        self.max_memory_size = max_memory_size
        self.name = name
        self._clock = clock
        self._items: Dict[Tuple[Namespace, str], CacheItem] = {}
        self._memory_size = 0

    @property
    def current_memory_size(self) -> int:
        return self._memory_size

    def get(self, key: str) -> Optional[Any]:
        return self._get(ROOT, key)

    def set(self, key: str, value: Any) -> None:
        self._set(ROOT, key, value)

    def has(self, key: str) -> bool:
        return self._has(ROOT, key)

    def delete(self, key: str) -> bool:
        return self._delete(ROOT, key)

    def clear(self) -> None:
        """Drop every entry, including those written through views"""
        self._items.clear()
        self._memory_size = 0
        cache_size.labels(cache_type=self.name).set(0)
        logger.info("memory_cache_cleared", cache=self.name)

    def stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        ``size`` counts entries across all namespaces while ``max_size`` is the
        per-namespace limit; ``namespaces`` breaks the count down by namespace
        (``""`` is the root).
        """
        self._cleanup_expired()
        namespaces: Dict[str, int] = {}
        for namespace, _ in self._items:
            label = namespace_label(namespace)
            namespaces[label] = namespaces.get(label, 0) + 1

        return {
            "size": len(self._items),
            "max_size": self.max_size,
            "current_memory_size": self._memory_size,
            "ttl": self.ttl,
            "keys": [
                ":".join(namespace + (key,)) for namespace, key in self._items
            ],
            "namespaces": namespaces,
        }

    def namespace(self, prefix: str) -> "CacheView":
        """View over this cache with its own key space and limits"""
        return CacheView(self, (prefix,))

    def _cache_type(self, namespace: Namespace) -> str:
        return f"{self.name}:{namespace_label(namespace)}" if namespace else self.name

    def _get(self, namespace: Namespace, key: str) -> Optional[Any]:
        self._cleanup_expired()

        item = self._items.get((namespace, key))
        if item is None:
            cache_misses.labels(cache_type=self._cache_type(namespace)).inc()
            return None

        cache_hits.labels(cache_type=self._cache_type(namespace), match_type="exact").inc()
        logger.debug("memory_cache_hit", cache=self.name, namespace=namespace_label(namespace), key=key)
        return item.value

    def _has(self, namespace: Namespace, key: str) -> bool:
        self._cleanup_expired()
        return (namespace, key) in self._items

    def _delete(self, namespace: Namespace, key: str) -> bool:
        self._cleanup_expired()
        removed = self._remove((namespace, key))
        if removed:
            cache_size.labels(cache_type=self.name).set(len(self._items))
        return removed

    def _set(self, namespace: Namespace, key: str, value: Any) -> None:
        size = estimate_size(value)
        item_key = (namespace, key)

        if self.max_memory_size is not None and size > self.max_memory_size:
            logger.warning(
                "memory_cache_value_too_large",
                cache=self.name,
                namespace=namespace_label(namespace),
                key=key,
                size=size,
                max_memory_size=self.max_memory_size
            )
            self._remove(item_key)
            return

        # Replacing a key frees its slot before any eviction decision
        self._remove(item_key)
        self._cleanup_expired()

        while self._namespace_count(namespace) >= self.max_size:
            if not self._evict_oldest(namespace):
                break
        if self.max_memory_size is not None:
            while self._namespace_memory(namespace) + size > self.max_memory_size:
                if not self._evict_oldest(namespace):
                    break

        self._items[item_key] = CacheItem(value=value, inserted_at=self._clock(), size=size)
        self._memory_size += size
        cache_size.labels(cache_type=self.name).set(len(self._items))
        logger.debug(
            "memory_cache_set",
            cache=self.name,
            namespace=namespace_label(namespace),
            key=key,
            size=size
        )

    def _remove(self, item_key: Tuple[Namespace, str]) -> bool:
        item = self._items.pop(item_key, None)
        if item is None:
            return False
        self._memory_size -= item.size
        return True

    def _clear_namespace(self, namespace: Namespace) -> None:
        for item_key in self._namespace_keys(namespace):
            self._remove(item_key)
        cache_size.labels(cache_type=self.name).set(len(self._items))

    def _namespace_keys(self, namespace: Namespace) -> List[Tuple[Namespace, str]]:
        return [item_key for item_key in self._items if item_key[0] == namespace]

    def _namespace_count(self, namespace: Namespace) -> int:
        return sum(1 for ns, _ in self._items if ns == namespace)

    def _namespace_memory(self, namespace: Namespace) -> int:
        return sum(item.size for (ns, _), item in self._items.items() if ns == namespace)

    def _cleanup_expired(self) -> None:
        now = self._clock()
        expired = [
            item_key for item_key, item in self._items.items()
            if now - item.inserted_at > self.ttl
        ]
        for item_key in expired:
            self._remove(item_key)
        if expired:
            cache_evictions.labels(cache_type=self.name, reason="expired").inc(len(expired))
            cache_size.labels(cache_type=self.name).set(len(self._items))

    def _evict_oldest(self, namespace: Namespace) -> bool:
        item_keys = self._namespace_keys(namespace)
        if not item_keys:
            return False

        oldest = min(item_keys, key=lambda k: self._items[k].inserted_at)
        self._remove(oldest)
        cache_evictions.labels(cache_type=self.name, reason="capacity").inc()
        logger.debug(
            "memory_cache_evicted",
            cache=self.name,
            namespace=namespace_label(namespace),
            key=oldest[1]
        )
        return True


class CacheView:
    """Namespaced view over a MemoryCache; all calls go through the parent"""

    def __init__(self, parent: MemoryCache, namespace: Namespace):
        self._parent = parent
        self._namespace = namespace

    @property
    def prefix(self) -> str:
        return namespace_label(self._namespace)

    def get(self, key: str) -> Optional[Any]:
        return self._parent._get(self._namespace, key)

    def set(self, key: str, value: Any) -> None:
        self._parent._set(self._namespace, key, value)

    def has(self, key: str) -> bool:
        return self._parent._has(self._namespace, key)

    def delete(self, key: str) -> bool:
        return self._parent._delete(self._namespace, key)

    def clear(self) -> None:
        """Drop this view's entries only"""
        self._parent._clear_namespace(self._namespace)

    def namespace(self, prefix: str) -> "CacheView":
        return CacheView(self._parent, self._namespace + (prefix,))
