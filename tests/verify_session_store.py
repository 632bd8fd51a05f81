import os
import sys
import threading
import time
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from models import Dialogue, Step
from services.state_manager import SessionStore


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class SessionStoreTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.store = SessionStore("test", ttl_seconds=100, max_entries=3, clock=self.clock)

    def test_set_get_pop(self):
        dialogue = Dialogue(step=Step.WAITING_AMOUNT, crypto_type="BTC")
        self.store.set("u1", dialogue)
        self.assertIs(self.store.get("u1"), dialogue)
        self.assertIn("u1", self.store)
        self.assertIs(self.store.pop("u1"), dialogue)
        self.assertIsNone(self.store.get("u1"))
        self.assertIsNone(self.store.pop("u1"))

    def test_new_state_replaces_old(self):
        self.store.set("u1", Dialogue(step=Step.WAITING_AMOUNT, crypto_type="BTC"))
        self.store.set("u1", Dialogue(step=Step.WAITING_GIFT_DETAILS, gift_type="Steam"))
        self.assertEqual(self.store.get("u1").step, Step.WAITING_GIFT_DETAILS)
        self.assertEqual(len(self.store), 1)

    def test_idle_sessions_expire(self):
        self.store.set("u1", "state")
        self.clock.now = 101
        self.assertIsNone(self.store.get("u1"))
        self.assertEqual(len(self.store), 0)

    def test_get_refreshes_idle_timer(self):
        self.store.set("u1", "state")
        self.clock.now = 90
        self.assertEqual(self.store.get("u1"), "state")
        self.clock.now = 180
        self.assertEqual(self.store.get("u1"), "state")

    def test_purge_expired_reports_count(self):
        self.store.set("u1", "a")
        self.store.set("u2", "b")
        self.clock.now = 50
        self.store.set("u3", "c")
        self.clock.now = 120
        self.assertEqual(self.store.purge_expired(), 2)
        self.assertEqual(len(self.store), 1)

    def test_capacity_evicts_least_recently_used(self):
        for key in ("u1", "u2", "u3"):
            self.store.set(key, key)
        self.store.get("u1")  # u2 is now the oldest
        self.store.set("u4", "u4")

        self.assertEqual(len(self.store), 3)
        self.assertIsNone(self.store.get("u2"))
        self.assertEqual(self.store.get("u1"), "u1")

    def test_keys_are_normalized_to_strings(self):
        self.store.set(42, "state")
        self.assertEqual(self.store.get("42"), "state")

    def test_lock_serializes_same_session(self):
        store = SessionStore("locks")
        inside = []
        overlaps = []

        def worker():
            with store.lock("u1"):
                if inside:
                    overlaps.append(True)
                inside.append(True)
                time.sleep(0.01)
                inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(overlaps, [])
        self.assertEqual(store.get_stats()["locked_sessions"], 0)

    def test_lock_does_not_block_other_sessions(self):
        store = SessionStore("locks")
        entered = threading.Event()

        def other():
            with store.lock("u2"):
                entered.set()

        with store.lock("u1"):
            t = threading.Thread(target=other)
            t.start()
            self.assertTrue(entered.wait(1))
            t.join()

    def test_lock_is_reentrant(self):
        with self.store.lock("u1"):
            with self.store.lock("u1"):
                self.store.set("u1", "state")
        self.assertEqual(self.store.get("u1"), "state")


if __name__ == "__main__":
    unittest.main()
