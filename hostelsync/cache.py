"""TTL cache for the weekly menu read path."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Generic, Optional, TypeVar

from cachetools import TTLCache

from .config import get_settings

T = TypeVar("T")


class SimpleTTLCache(Generic[T]):
    def __init__(self, ttl: int, maxsize: int = 256) -> None:
        self._cache: TTLCache[str, T] = TTLCache(maxsize=maxsize, ttl=ttl)

    def get(self, key: str) -> Optional[T]:
        return self._cache.get(key)

    def set(self, key: str, value: T) -> None:
        self._cache[key] = value

    def pop(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)


def week_start(day: date) -> date:
    """Sunday on or before ``day``."""

    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_cache_key(day: date) -> str:
    return f"menu-week:{week_start(day).isoformat()}"


weekly_menu_cache: SimpleTTLCache[list] = SimpleTTLCache(ttl=get_settings().menu_cache_ttl)


def invalidate_menus() -> None:
    # Recurring writes can touch many weeks at once, so drop everything.
    weekly_menu_cache.clear()
