"""Unit tests for the weekly menu cache."""
import time
from datetime import date

from hostelsync.cache import SimpleTTLCache, invalidate_menus, week_cache_key, week_start, weekly_menu_cache


class TestSimpleTTLCache:
    """TTL cache behaviour."""

    def test_cache_set_and_get(self):
        cache = SimpleTTLCache[str](ttl=60)

        cache.set("key1", "value1")
        assert cache.get("key1") == "value1"
        assert cache.get("missing") is None

    def test_cache_ttl_expiration(self):
        """Values disappear once the TTL passes."""
        cache = SimpleTTLCache[str](ttl=1)

        cache.set("key1", "value1")
        time.sleep(1.1)

        assert cache.get("key1") is None

    def test_cache_pop_and_clear(self):
        cache = SimpleTTLCache[int](ttl=60)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.pop("a")
        cache.pop("nonexistent")
        assert cache.get("a") is None
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0

    def test_cache_maxsize(self):
        cache = SimpleTTLCache[str](ttl=60, maxsize=2)

        cache.set("key1", "value1")
        cache.set("key2", "value2")
        cache.set("key3", "value3")

        assert len(cache) == 2
        assert cache.get("key3") == "value3"


class TestWeekKeys:
    """Weeks start on Sunday."""

    def test_week_start_is_previous_sunday(self):
        # 2025-11-12 is a Wednesday.
        assert week_start(date(2025, 11, 12)) == date(2025, 11, 9)

    def test_week_start_on_sunday_is_same_day(self):
        assert week_start(date(2025, 11, 9)) == date(2025, 11, 9)

    def test_days_in_same_week_share_a_key(self):
        assert week_cache_key(date(2025, 11, 9)) == week_cache_key(date(2025, 11, 15))
        assert week_cache_key(date(2025, 11, 15)) != week_cache_key(date(2025, 11, 16))

    def test_invalidate_menus_empties_cache(self):
        weekly_menu_cache.set(week_cache_key(date(2025, 11, 9)), [{"id": 1}])

        invalidate_menus()

        assert len(weekly_menu_cache) == 0
