"""Tests for the local message cache."""

from __future__ import annotations

import json
import unittest
from unittest.mock import MagicMock

from pairchat.chat.cache import MemoryCacheStore, MessageCache
from tests.mock_utils import make_message


class MessageCacheTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.now = 5_000.0
        self.store = MemoryCacheStore()
        self.cache = MessageCache(self.store, clock=lambda: self.now)

    def test_key_format(self) -> None:
        self.assertEqual(MessageCache.key_for("a_b"), "chat_cache_a_b")

    def test_saved_messages_come_back_with_timestamps(self) -> None:
        original = make_message(7)
        self.cache.save("a_b", [original])

        (loaded,) = self.cache.load("a_b")
        self.assertEqual(loaded["id"], "m007")
        self.assertEqual(loaded["createdAt"], original["createdAt"])

    def test_provisional_messages_are_not_cached(self) -> None:
        pending = make_message(8, id="temp-x", pending=True)
        self.cache.save("a_b", [make_message(1), pending])
        self.assertEqual([m["id"] for m in self.cache.load("a_b")], ["m001"])

    def test_expired_entry_is_removed(self) -> None:
        self.cache.save("a_b", [make_message(1)])
        self.now += 20 * 60 + 1

        self.assertIsNone(self.cache.load("a_b"))
        self.assertIsNone(self.store.get("chat_cache_a_b"))

    def test_entry_at_ttl_is_fresh(self) -> None:
        self.cache.save("a_b", [make_message(1)])
        self.now += 20 * 60
        self.assertIsNotNone(self.cache.load("a_b"))

    def test_unreadable_entry_is_removed(self) -> None:
        self.store.set("chat_cache_a_b", json.dumps({"messages": []}))
        self.assertIsNone(self.cache.load("a_b"))
        self.assertIsNone(self.store.get("chat_cache_a_b"))

    def test_store_failures_are_not_raised(self) -> None:
        store = MagicMock()
        store.get.side_effect = OSError("disk gone")
        store.set.side_effect = OSError("disk gone")
        cache = MessageCache(store)

        self.assertIsNone(cache.load("a_b"))
        cache.save("a_b", [make_message(1)])


if __name__ == "__main__":
    unittest.main()
