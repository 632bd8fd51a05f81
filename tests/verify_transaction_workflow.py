import os
import sys
import threading
import unittest
from unittest.mock import MagicMock

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from config.errors import (
    AlreadyProcessedError, DuplicateSubmissionError, NotFoundError, StoreError, ValidationError,
)
from models import Transaction, TransactionStatus, TransactionType, User
from services.memory_store import MemoryStore
from services.settings_service import SettingsCache, default_settings
from services.transaction_service import TransactionWorkflow


def buy_draft(amount=0.5):
    return Transaction(user_id="", type=TransactionType.BUY, crypto_type="BTC",
                       amount=amount, rate=50000.0, fiat_amount=amount * 50000.0,
                       payment_proof="file-1")


def sell_draft():
    return Transaction(user_id="", type=TransactionType.SELL, crypto_type="ETH",
                       amount=2.0, tx_hash="0xabc")


class TransactionWorkflowTests(unittest.TestCase):
    def setUp(self):
        self.store = MemoryStore()
        self.workflow = TransactionWorkflow(self.store)
        self.user = User(session_id="100", username="alice")

    def test_submit_creates_pending_record_with_id(self):
        tx = self.workflow.submit(self.user, buy_draft())
        self.assertTrue(tx.id)
        self.assertEqual(tx.user_id, "100")
        self.assertEqual(tx.status, TransactionStatus.PENDING)
        self.assertEqual(self.store.find_transaction_by_id(tx.id).fiat_amount, 25000.0)

    def test_submit_without_evidence_is_refused(self):
        draft = Transaction(user_id="", type=TransactionType.SELL, crypto_type="ETH", amount=1.0)
        with self.assertRaises(ValidationError):
            self.workflow.submit(self.user, draft)
        self.assertEqual(self.store.count_and_list_transactions("100", 0, 5)[0], 0)

    def test_second_pending_of_same_type_is_rejected(self):
        self.workflow.submit(self.user, buy_draft())
        with self.assertRaises(DuplicateSubmissionError):
            self.workflow.submit(self.user, buy_draft(amount=1))

    def test_pending_of_other_type_is_allowed(self):
        self.workflow.submit(self.user, buy_draft())
        tx = self.workflow.submit(self.user, sell_draft())
        self.assertEqual(tx.type, TransactionType.SELL)

    def test_submit_allowed_again_after_terminal_state(self):
        first = self.workflow.submit(self.user, buy_draft())
        self.workflow.reject(first.id, "blurry proof", admin_id="1")
        second = self.workflow.submit(self.user, buy_draft())
        self.assertNotEqual(first.id, second.id)

    def test_concurrent_submits_store_exactly_one(self):
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            try:
                self.workflow.submit(self.user, buy_draft())
                outcome = "ok"
            except DuplicateSubmissionError:
                outcome = "dup"
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(results.count("ok"), 1)
        self.assertEqual(results.count("dup"), 7)
        total, _ = self.store.count_and_list_transactions("100", 0, 10)
        self.assertEqual(total, 1)

    def test_approve_keeps_status_pending(self):
        tx = self.workflow.submit(self.user, sell_draft())
        approved = self.workflow.approve(tx.id, admin_id="1")
        self.assertEqual(approved.status, TransactionStatus.PENDING)

    def test_approve_unknown_or_processed(self):
        with self.assertRaises(NotFoundError):
            self.workflow.approve("missing", admin_id="1")

        tx = self.workflow.submit(self.user, sell_draft())
        self.workflow.complete(tx.id, "IBAN 123")
        with self.assertRaises(AlreadyProcessedError):
            self.workflow.approve(tx.id, admin_id="1")

    def test_complete_sets_details(self):
        tx = self.workflow.submit(self.user, sell_draft())
        done = self.workflow.complete(tx.id, "IBAN 123")
        self.assertEqual(done.status, TransactionStatus.COMPLETED)
        self.assertEqual(done.payment_details, "IBAN 123")

    def test_reject_sets_reason(self):
        tx = self.workflow.submit(self.user, sell_draft())
        rejected = self.workflow.reject(tx.id, "fake hash", admin_id="1")
        self.assertEqual(rejected.status, TransactionStatus.REJECTED)
        self.assertEqual(rejected.reject_reason, "fake hash")

    def test_terminal_states_are_final(self):
        tx = self.workflow.submit(self.user, sell_draft())
        self.workflow.reject(tx.id, "no", admin_id="1")
        with self.assertRaises(NotFoundError):
            self.workflow.complete(tx.id, "IBAN")
        with self.assertRaises(NotFoundError):
            self.workflow.reject(tx.id, "again", admin_id="1")
        self.assertEqual(self.store.find_transaction_by_id(tx.id).status, TransactionStatus.REJECTED)

    def test_unexpected_store_failure_becomes_store_error(self):
        store = MagicMock()
        store.create_transaction.side_effect = RuntimeError("disk full")
        store.create_transaction.__name__ = "create_transaction"
        with self.assertRaises(StoreError):
            TransactionWorkflow(store).submit(self.user, buy_draft())


class HistoryPagingTests(unittest.TestCase):
    def setUp(self):
        self.store = MemoryStore()
        self.workflow = TransactionWorkflow(self.store)
        self.user = User(session_id="200")
        # 12 records: complete each so the next one is not a duplicate
        self.ids = []
        for _ in range(12):
            tx = self.workflow.submit(self.user, buy_draft())
            self.workflow.complete(tx.id, "details")
            self.ids.append(tx.id)

    def test_pages_are_newest_first(self):
        page = self.workflow.list_page("200", 1)
        self.assertEqual(page.total, 12)
        self.assertEqual(page.total_pages, 3)
        self.assertEqual([t.id for t in page.items], list(reversed(self.ids))[:5])
        self.assertFalse(page.has_previous)
        self.assertTrue(page.has_next)

    def test_last_page(self):
        page = self.workflow.list_page("200", 3)
        self.assertEqual(len(page.items), 2)
        self.assertEqual([t.id for t in page.items], self.ids[1::-1])
        self.assertFalse(page.has_next)

    def test_page_is_clamped(self):
        self.assertEqual(self.workflow.list_page("200", 99).page, 3)
        self.assertEqual(self.workflow.list_page("200", 0).page, 1)

    def test_empty_history(self):
        page = self.workflow.list_page("nobody", 1)
        self.assertEqual(page.items, [])
        self.assertEqual(page.total_pages, 1)

    def test_other_users_are_not_listed(self):
        self.workflow.submit(User(session_id="300"), sell_draft())
        self.assertEqual(self.workflow.list_page("200", 1).total, 12)


class SettingsCacheTests(unittest.TestCase):
    def setUp(self):
        self.store = MemoryStore()
        self.cache = SettingsCache(self.store)

    def test_load_creates_defaults_on_first_boot(self):
        settings = self.cache.load()
        self.assertEqual(settings.crypto_rates["BTC"], 50000.0)
        self.assertEqual(settings.gift_card_rates["Steam"], 0.88)
        self.assertIs(self.store.get_settings(), settings)

    def test_update_swaps_whole_map_and_bumps_version(self):
        self.cache.load()
        before = self.cache.current()
        after = self.cache.update("9", crypto_rates={"BTC": 60000.0, "ETH": 3500.0, "USDT": 1.0})

        self.assertEqual(after.version, before.version + 1)
        self.assertEqual(self.cache.crypto_rate("BTC"), 60000.0)
        self.assertEqual(after.updated_by, "9")
        # Old snapshot is untouched; other maps carried over
        self.assertEqual(before.crypto_rates["BTC"], 50000.0)
        self.assertEqual(dict(after.gift_card_rates), dict(before.gift_card_rates))
        self.assertIs(self.store.get_settings(), after)

    def test_unknown_asset_keys_are_refused(self):
        self.cache.load()
        before = self.cache.current()
        with self.assertRaises(ValidationError):
            self.cache.update("9", crypto_rates={"DOGE": 0.1})
        with self.assertRaises(ValidationError):
            self.cache.update("9", gift_card_rates={"Netflix": 0.5})
        self.assertIs(self.cache.current(), before)

    def test_snapshot_maps_are_read_only(self):
        settings = default_settings()
        with self.assertRaises(TypeError):
            settings.crypto_rates["BTC"] = 1.0

    def test_failed_write_leaves_cache_unchanged(self):
        self.cache.load()
        before = self.cache.current()
        self.store.upsert_settings = MagicMock(side_effect=RuntimeError("quota"))

        with self.assertRaises(StoreError):
            self.cache.update("9", wallets={"BTC": "bc1", "ETH": "0x1", "USDT": "T1"})
        self.assertIs(self.cache.current(), before)

    def test_wallet_accessor_defaults_to_empty(self):
        self.cache.update("9", wallets={"BTC": "bc1q"})
        self.assertEqual(self.cache.wallet("BTC"), "bc1q")
        self.assertEqual(self.cache.wallet("ETH"), "")


if __name__ == "__main__":
    unittest.main()
