import unittest
from unittest.mock import MagicMock, patch

from skinscan.kv_store import InMemoryKvStore, RedisKvStore, SqlKvStore, escape_redis_glob


class KvStoreContract:
    """Behaviour every KvStore backend must share."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.store.get("user:nobody"))

    def test_set_then_get(self):
        self.store.set("user:1", {"id": "1", "name": "Ann"})
        self.assertEqual(self.store.get("user:1"), {"id": "1", "name": "Ann"})

    def test_set_overwrites(self):
        self.store.set("user:1", {"name": "Ann"})
        self.store.set("user:1", {"name": "Bea"})
        self.assertEqual(self.store.get("user:1"), {"name": "Bea"})

    def test_delete_is_idempotent(self):
        self.store.set("scan_1", {"id": "scan_1"})
        self.store.delete("scan_1")
        self.store.delete("scan_1")
        self.assertIsNone(self.store.get("scan_1"))

    def test_scan_prefix_matches_only_prefix(self):
        self.store.set("scan_u1_1", {"id": "a"})
        self.store.set("scan_u1_2", {"id": "b"})
        self.store.set("scan_u2_1", {"id": "c"})
        self.store.set("user:u1", {"id": "u1"})
        ids = sorted(v["id"] for v in self.store.scan_prefix("scan_u1_"))
        self.assertEqual(ids, ["a", "b"])

    def test_scan_prefix_treats_wildcards_literally(self):
        self.store.set("scan_a_1", {"id": "literal"})
        self.store.set("scanXaX1", {"id": "wildcard"})
        ids = [v["id"] for v in self.store.scan_prefix("scan_a_")]
        self.assertEqual(ids, ["literal"])

    def test_values_are_copies(self):
        value = {"tags": ["x"]}
        self.store.set("k", value)
        value["tags"].append("y")
        loaded = self.store.get("k")
        loaded["tags"].append("z")
        self.assertEqual(self.store.get("k"), {"tags": ["x"]})


class InMemoryKvStoreTests(KvStoreContract, unittest.TestCase):
    def make_store(self):
        return InMemoryKvStore()

    def test_reset(self):
        self.store.set("k", {"a": 1})
        self.store.reset()
        self.assertEqual(self.store.scan_prefix(""), [])


class SqlKvStoreTests(KvStoreContract, unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL backend.
    """

    def make_store(self):
        return SqlKvStore("sqlite+pysqlite:///:memory:")

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            SqlKvStore("")


class RedisKvStoreTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("skinscan.kv_store.redis.Redis.from_url")
        self.addCleanup(patcher.stop)
        self.client = MagicMock()
        patcher.start().return_value = self.client
        self.store = RedisKvStore("redis://localhost:6379/0", key_prefix="t:")

    def test_escape_redis_glob(self):
        self.assertEqual(escape_redis_glob("a*b?[c]\\"), "a\\*b\\?\\[c\\]\\\\")
        self.assertEqual(escape_redis_glob("scan_u1_"), "scan_u1_")

    def test_get_decodes_json(self):
        self.client.get.return_value = b'{"id": "1"}'
        self.assertEqual(self.store.get("user:1"), {"id": "1"})
        self.client.get.assert_called_once_with("t:user:1")

    def test_get_missing(self):
        self.client.get.return_value = None
        self.assertIsNone(self.store.get("user:1"))

    def test_set_and_delete_use_namespace(self):
        self.store.set("user:1", {"id": "1"})
        self.client.set.assert_called_once_with("t:user:1", '{"id": "1"}')
        self.store.delete("user:1")
        self.client.delete.assert_called_once_with("t:user:1")

    def test_scan_prefix_skips_vanished_keys(self):
        self.client.scan_iter.return_value = iter([b"t:scan_a", b"t:scan_b"])
        self.client.mget.return_value = [b'{"id": "scan_a"}', None]
        values = self.store.scan_prefix("scan_")
        self.assertEqual(values, [{"id": "scan_a"}])
        self.client.scan_iter.assert_called_once_with(match="t:scan_*", count=500)

    def test_scan_prefix_empty(self):
        self.client.scan_iter.return_value = iter([])
        self.assertEqual(self.store.scan_prefix("scan_"), [])
        self.client.mget.assert_not_called()


if __name__ == "__main__":
    unittest.main()
