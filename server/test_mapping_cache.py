from manifest_ingest.services.mapping_cache import MappingCache, make_mapping_key


class TestMappingCache:
    def test_key_ignores_candidate_order(self):
        assert make_mapping_key("Cust", ["b", "a"]) == make_mapping_key("Cust", ["a", "b"])
        assert make_mapping_key("Cust", ["a"]) != make_mapping_key("Cust ", ["a"])

    def test_entry_expires_after_ttl(self, clock):
        cache = MappingCache(ttl_seconds=60, clock=clock)
        key = make_mapping_key("Cust", ["shipToCustomer"])
        cache.set(key, "value")

        clock.advance(59)
        assert cache.get(key) == "value"

        clock.advance(1)
        assert cache.get(key) is None
        assert len(cache) == 0

    def test_per_entry_ttl_and_purge(self, clock):
        cache = MappingCache(ttl_seconds=600, clock=clock)
        cache.set(("short", ()), 1, ttl_seconds=5)
        cache.set(("long", ()), 2)

        clock.advance(10)
        assert cache.purge_expired() == 1
        assert len(cache) == 1
        assert cache.get(("long", ())) == 2

    def test_delete_and_clear(self, clock):
        cache = MappingCache(clock=clock)
        cache.set(("a", ()), 1)
        cache.set(("b", ()), 2)
        cache.delete(("a", ()))
        assert cache.get(("a", ())) is None
        cache.clear()
        assert len(cache) == 0
