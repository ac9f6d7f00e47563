import threading
import unittest

from cachetools import TTLCache

from lib.cache_manager import (
    PlaylistCache,
    build_playlist_cache_key,
    get_playlist_cache,
    playlist_cache_prefix,
)


class PlaylistCacheTests(unittest.TestCase):
    def test_key_contains_playlist_and_snapshot(self):
        key = build_playlist_cache_key("pl1", "snapA")
        self.assertTrue(key.startswith(playlist_cache_prefix("pl1")))
        self.assertTrue(key.endswith("snapA"))
        self.assertNotEqual(key, build_playlist_cache_key("pl1", "snapB"))

    def test_get_set_and_stats(self):
        cache = PlaylistCache()
        key = build_playlist_cache_key("pl1", "snapA")

        self.assertIsNone(cache.get(key))
        cache.set(key, {"tracks": []})
        self.assertEqual(cache.get(key), {"tracks": []})

        self.assertEqual(cache.stats(), {"total": 1, "hits": 1, "misses": 1})

    def test_needs_refresh_follows_snapshot(self):
        cache = PlaylistCache()
        cache.set(build_playlist_cache_key("pl1", "snapA"), "data")

        self.assertFalse(cache.needs_refresh("pl1", "snapA"))
        self.assertTrue(cache.needs_refresh("pl1", "snapB"))
        self.assertTrue(cache.needs_refresh("pl2", "snapA"))

    def test_clear_by_prefix(self):
        cache = PlaylistCache()
        cache.set(build_playlist_cache_key("pl1", "s1"), 1)
        cache.set(build_playlist_cache_key("pl1", "s2"), 2)
        cache.set(build_playlist_cache_key("pl10", "s1"), 3)

        removed = cache.clear(playlist_cache_prefix("pl1"))

        self.assertEqual(removed, 2)
        self.assertTrue(cache.needs_refresh("pl1", "s1"))
        self.assertFalse(cache.needs_refresh("pl10", "s1"))

        self.assertEqual(cache.clear(), 1)
        self.assertEqual(len(cache), 0)

    def test_accepts_any_mapping_store(self):
        store = {}
        cache = PlaylistCache(store)
        cache.set("k", "v")
        self.assertEqual(store, {"k": "v"})

    def test_concurrent_access_from_worker_threads(self):
        # short ttl so expiry runs inside get/set while clear() iterates
        cache = PlaylistCache(TTLCache(maxsize=64, ttl=0.0005))
        errors = []
        stop = threading.Event()

        def writer(n):
            try:
                for i in range(300):
                    key = build_playlist_cache_key(f"p{n}", str(i))
                    cache.set(key, i)
                    cache.get(key)
                    cache.needs_refresh(f"p{n}", str(i))
            except Exception as e:
                errors.append(e)

        def cleaner():
            try:
                while not stop.is_set():
                    cache.clear(playlist_cache_prefix("p0"))
                    cache.stats()
                    len(cache)
            except Exception as e:
                errors.append(e)

        workers = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        sweeper = threading.Thread(target=cleaner)
        sweeper.start()
        for t in workers:
            t.start()
        for t in workers:
            t.join()
        stop.set()
        sweeper.join()

        self.assertEqual(errors, [])
        stats = cache.stats()
        self.assertEqual(stats["hits"] + stats["misses"], 4 * 300)

    def test_default_store_is_ttl_cache(self):
        self.assertIsInstance(PlaylistCache()._store, TTLCache)
        self.assertIs(get_playlist_cache(), get_playlist_cache())


if __name__ == "__main__":
    unittest.main()
