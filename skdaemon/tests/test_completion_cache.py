import unittest

from skdaemon.services.completion_cache import CompletionCache, make_signature


class CompletionCacheTests(unittest.TestCase):
    def test_capacity_evicts_oldest_insertions(self) -> None:
        cache = CompletionCache(capacity=5)
        signatures = [f"sig-{i}" for i in range(8)]
        for i, signature in enumerate(signatures):
            cache.put(signature, [i])

        self.assertEqual(len(cache), 5)
        for signature in signatures[:3]:
            self.assertIsNone(cache.get(signature))
        for signature in signatures[3:]:
            self.assertIsNotNone(cache.get(signature))

    def test_get_returns_stored_payload(self) -> None:
        cache = CompletionCache(capacity=5)
        payload = ("a", "b")
        cache.put("sig", payload)
        self.assertIs(cache.get("sig"), payload)

    def test_missing_signature_yields_none(self) -> None:
        self.assertIsNone(CompletionCache(capacity=2).get("nope"))

    def test_hit_does_not_refresh_eviction_order(self) -> None:
        cache = CompletionCache(capacity=2)
        cache.put("a", 1)
        cache.put("b", 2)
        self.assertEqual(cache.get("a"), 1)
        cache.put("c", 3)

        self.assertNotIn("a", cache)
        self.assertEqual(cache.signatures(), ["b", "c"])

    def test_overwrite_keeps_original_insertion_order(self) -> None:
        cache = CompletionCache(capacity=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("a", 10)
        self.assertEqual(len(cache), 2)
        self.assertEqual(cache.get("a"), 10)

        cache.put("c", 3)
        self.assertIsNone(cache.get("a"))
        self.assertEqual(cache.get("b"), 2)
        self.assertEqual(cache.get("c"), 3)

    def test_clear(self) -> None:
        cache = CompletionCache(capacity=3)
        cache.put("a", 1)
        cache.clear()
        self.assertEqual(len(cache), 0)


class SignatureTests(unittest.TestCase):
    def test_signature_is_deterministic(self) -> None:
        self.assertEqual(make_signature(10, "/tmp/a.swift", "rev-1"), make_signature(10, "/tmp/a.swift", "rev-1"))

    def test_signature_depends_on_every_field(self) -> None:
        base = make_signature(10, "/tmp/a.swift", "rev-1")
        self.assertNotEqual(base, make_signature(11, "/tmp/a.swift", "rev-1"))
        self.assertNotEqual(base, make_signature(10, "/tmp/b.swift", "rev-1"))
        self.assertNotEqual(base, make_signature(10, "/tmp/a.swift", "rev-2"))

    def test_signature_fields_do_not_run_together(self) -> None:
        self.assertNotEqual(make_signature(1, "2/x", ""), make_signature(12, "/x", ""))


if __name__ == "__main__":
    unittest.main()
