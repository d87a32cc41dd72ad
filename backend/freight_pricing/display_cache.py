from __future__ import annotations

from threading import Lock
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .price_display import CanonicalPriceResult

# (freight id, unit_only)
DisplayKey = tuple[str, bool]


class PriceDisplayCache(Protocol):
    def get(self, key: DisplayKey) -> CanonicalPriceResult | None: ...

    def put(self, key: DisplayKey, result: CanonicalPriceResult) -> None: ...

    def invalidate(self, freight_id: str | None = None) -> int: ...


class DisplayCacheStore:
    """Memo of canonical price results keyed by ``(freight_id, unit_only)``.

    Entries never expire; they are replaced only after an explicit
    ``invalidate``. Stored objects are returned as-is so callers can compare
    by identity.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._items: dict[DisplayKey, CanonicalPriceResult] = {}

        self._hits = 0
        self._misses = 0

    def get(self, key: DisplayKey) -> CanonicalPriceResult | None:
        with self._lock:
            entry = self._items.get(key)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry

    def put(self, key: DisplayKey, result: CanonicalPriceResult) -> None:
        with self._lock:
            self._items[key] = result

    def invalidate(self, freight_id: str | None = None) -> int:
        """Drop both variants of one freight, or everything when ``freight_id`` is None."""
        with self._lock:
            if freight_id is None:
                cleared = len(self._items)
                self._items.clear()
                return cleared
            removed = 0
            for key in ((freight_id, False), (freight_id, True)):
                if self._items.pop(key, None) is not None:
                    removed += 1
            return removed

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {
                "size": len(self._items),
                "hits": self._hits,
                "misses": self._misses,
            }


class NullDisplayCache:
    """Cache that never stores; every call recomputes."""

    def get(self, key: DisplayKey) -> CanonicalPriceResult | None:
        return None

    def put(self, key: DisplayKey, result: CanonicalPriceResult) -> None:
        return None

    def invalidate(self, freight_id: str | None = None) -> int:
        return 0


DISPLAY_CACHE = DisplayCacheStore()


def invalidate_display_cache(freight_id: str | None = None) -> int:
    return DISPLAY_CACHE.invalidate(freight_id)


def display_cache_stats() -> dict[str, int]:
    return DISPLAY_CACHE.snapshot()
