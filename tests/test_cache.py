"""Tests for the in-process link cache."""

from datetime import timedelta

from shortener.database.cache import CacheEntry, LinkCache

from conftest import START_TIME, make_link


class TestLinkCache:
    """Test cache operations."""

    def test_insert_and_lookup(self):
        cache = LinkCache()
        expires = START_TIME + timedelta(days=1)

        cache.insert("abc123", "https://example.com", expires)

        assert cache.lookup("abc123", START_TIME) == CacheEntry("https://example.com", expires)
        assert "abc123" in cache
        assert len(cache) == 1

    def test_lookup_miss(self):
        assert LinkCache().lookup("abc123", START_TIME) is None

    def test_lookup_removes_expired(self):
        """An entry at or past its expiry is a miss and is dropped."""
        cache = LinkCache()
        cache.insert("abc123", "https://example.com", START_TIME)

        assert cache.lookup("abc123", START_TIME) is None
        assert "abc123" not in cache

    def test_insert_overwrites(self):
        cache = LinkCache()
        cache.insert("abc123", "https://old.example.com", START_TIME + timedelta(days=1))
        cache.insert("abc123", "https://new.example.com", START_TIME + timedelta(days=2))

        assert cache.lookup("abc123", START_TIME).original_url == "https://new.example.com"
        assert len(cache) == 1

    def test_remove(self):
        cache = LinkCache()
        cache.insert("abc123", "https://example.com", START_TIME + timedelta(days=1))

        assert cache.remove("abc123") is True
        assert cache.remove("abc123") is False

    def test_sweep_removes_only_expired(self):
        cache = LinkCache()
        cache.insert("old111", "https://old.example.com", START_TIME - timedelta(seconds=1))
        cache.insert("now222", "https://now.example.com", START_TIME)
        cache.insert("new333", "https://new.example.com", START_TIME + timedelta(seconds=1))

        assert cache.sweep(START_TIME) == 2
        assert list(cache.active_items(START_TIME)) == ["new333"]
        assert cache.sweep(START_TIME) == 0

    def test_bulk_load_links_and_tuples(self):
        cache = LinkCache()
        loaded = cache.bulk_load([
            make_link("abc123", "https://a.example.com", START_TIME),
            ("def456", "https://b.example.com", START_TIME + timedelta(days=3)),
        ])

        assert loaded == 2
        assert cache.lookup("def456", START_TIME).original_url == "https://b.example.com"

    def test_active_items_leaves_expired_entries(self):
        cache = LinkCache()
        cache.insert("old111", "https://old.example.com", START_TIME - timedelta(hours=1))
        cache.insert("new222", "https://new.example.com", START_TIME + timedelta(hours=1))

        assert set(cache.active_items(START_TIME)) == {"new222"}
        assert len(cache) == 2

    def test_counts(self):
        cache = LinkCache()
        cache.insert("old111", "https://old.example.com", START_TIME - timedelta(hours=1))
        cache.insert("new222", "https://new.example.com", START_TIME + timedelta(hours=1))

        counts = cache.counts(START_TIME)
        assert (counts.total, counts.active, counts.expired) == (2, 1, 1)

    def test_clear(self):
        cache = LinkCache()
        cache.insert("abc123", "https://example.com", START_TIME + timedelta(days=1))
        cache.clear()

        assert len(cache) == 0
