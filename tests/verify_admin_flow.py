import os
import sys
import unittest
from unittest.mock import patch

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from config.errors import UserErrors, ValidationError
from handlers.admin_handler import WIZARDS, parse_crypto_rate, parse_gift_rate, parse_wallet_address
from handlers.conversation import ConversationEngine
from messages import MSG
from models import AdminWizard, EventKind, InboundEvent
from security import RateLimiter
from services.memory_store import MemoryStore
from services.settings_service import SettingsCache

ADMIN = "999"


class RecordingSender:
    def __init__(self):
        self.messages = []
        self.answers = []

    def send(self, session_id, text, buttons=None):
        self.messages.append((str(session_id), text, buttons))
        return True

    def acknowledge(self, callback_id, text=None):
        self.answers.append((callback_id, text))
        return True

    def last_to(self, session_id):
        texts = [text for sid, text, _ in self.messages if sid == session_id]
        return texts[-1] if texts else None


class AdminWizardTests(unittest.TestCase):
    def setUp(self):
        self.store = MemoryStore()
        self.settings = SettingsCache(self.store)
        self.settings.load()
        self.sender = RecordingSender()
        self.engine = ConversationEngine(
            self.store, self.sender, settings=self.settings,
            rate_limiter=RateLimiter(limit=1000), admin_ids={ADMIN}, admin_chat_id=None,
        )

    def text(self, text, session_id=ADMIN):
        self.engine.handle(InboundEvent(session_id=session_id, kind=EventKind.TEXT, text=text))

    def press(self, data, session_id=ADMIN):
        self.engine.handle(InboundEvent(session_id=session_id, kind=EventKind.BUTTON,
                                        data=data, callback_id="cb"))

    def test_crypto_rates_wizard(self):
        version = self.settings.current().version
        self.press("set_crypto_rates")
        self.assertEqual(self.sender.last_to(ADMIN), "Enter the new BTC rate (in USD):")

        self.text("60000")
        self.assertEqual(self.sender.last_to(ADMIN), "Enter the new ETH rate (in USD):")

        self.text("abc")
        self.assertEqual(self.sender.last_to(ADMIN), UserErrors.ADMIN_INVALID_RATE)
        self.text("-1")
        self.assertEqual(self.sender.last_to(ADMIN), UserErrors.ADMIN_INVALID_RATE)

        # Nothing is visible until the last step
        self.assertEqual(self.settings.crypto_rate("BTC"), 50000.0)

        self.text("3500")
        self.text("1.01")
        self.assertEqual(self.sender.last_to(ADMIN), MSG.CRYPTO_RATES_SAVED)

        current = self.settings.current()
        self.assertEqual(dict(current.crypto_rates), {"BTC": 60000.0, "ETH": 3500.0, "USDT": 1.01})
        self.assertEqual(current.version, version + 1)
        self.assertEqual(current.updated_by, ADMIN)
        self.assertIs(self.store.get_settings(), current)
        self.assertIsNone(self.engine.admin_sessions.get(ADMIN))

    def test_gift_rates_wizard_bounds(self):
        self.press("set_gift_card_rates")
        for bad in ("1.5", "0", "-0.2", "x"):
            self.text(bad)
            self.assertEqual(self.sender.last_to(ADMIN), UserErrors.ADMIN_INVALID_GIFT_RATE)

        for value in ("0.9", "0.8", "0.7", "1"):
            self.text(value)
        self.assertEqual(self.sender.last_to(ADMIN), MSG.GIFT_RATES_SAVED)
        self.assertEqual(dict(self.settings.current().gift_card_rates),
                         {"Amazon": 0.9, "Apple": 0.8, "Google Play": 0.7, "Steam": 1.0})

    def test_wallets_wizard(self):
        self.press("update_wallets")
        self.text("   ")
        self.assertEqual(self.sender.last_to(ADMIN), UserErrors.ADMIN_INVALID_WALLET)

        for address in ("bc1qnew", "0xnew", "Tnew"):
            self.text(address)
        self.assertEqual(self.sender.last_to(ADMIN), MSG.WALLETS_SAVED)
        self.assertEqual(self.settings.wallet("ETH"), "0xnew")
        # Rates untouched
        self.assertEqual(self.settings.crypto_rate("BTC"), 50000.0)

    def test_cancel_aborts_without_saving(self):
        version = self.settings.current().version
        self.press("set_crypto_rates")
        self.text("1")
        self.text("Cancel")

        self.assertEqual(self.sender.last_to(ADMIN), MSG.ADMIN_CANCELLED)
        self.assertIsNone(self.engine.admin_sessions.get(ADMIN))
        self.assertEqual(self.settings.current().version, version)
        self.assertEqual(self.settings.crypto_rate("BTC"), 50000.0)

    def test_file_during_wizard_reprompts(self):
        self.press("update_wallets")
        self.engine.handle(InboundEvent(session_id=ADMIN, kind=EventKind.FILE, artifact=None))
        self.assertEqual(self.sender.last_to(ADMIN), "Enter the new BTC wallet address:")

    def test_save_failure_reports_and_keeps_old_settings(self):
        before = self.settings.current()
        self.press("set_crypto_rates")
        self.text("1")
        self.text("2")
        with patch.object(self.store, "upsert_settings", side_effect=RuntimeError("quota")):
            self.text("3")

        self.assertEqual(self.sender.last_to(ADMIN), UserErrors.ADMIN_SAVE_FAILED)
        self.assertIs(self.settings.current(), before)
        self.assertIsNone(self.engine.admin_sessions.get(ADMIN))

    def test_non_admin_cannot_open_wizard(self):
        for data in ("admin_panel", "set_crypto_rates", "set_gift_card_rates", "update_wallets"):
            self.press(data, session_id="555")
            self.assertEqual(self.sender.answers[-1][1], UserErrors.UNAUTHORIZED)
        self.assertIsNone(self.engine.admin_sessions.get("555"))
        self.assertIsNone(self.sender.last_to("555"))

    def test_admin_panel_buttons(self):
        self.press("admin_panel")
        self.assertEqual(self.sender.last_to(ADMIN), MSG.ADMIN_PANEL)

    def test_reject_of_unknown_transaction(self):
        self.press("reject_missing")
        self.assertEqual(self.sender.answers[-1][1], UserErrors.TX_NOT_FOUND_OR_PROCESSED)
        self.assertIsNone(self.engine.admin_sessions.get(ADMIN))


class StepParserTests(unittest.TestCase):
    def test_every_wizard_collects_the_full_map(self):
        self.assertEqual([s.key for s in WIZARDS[AdminWizard.CRYPTO_RATES].steps], ["BTC", "ETH", "USDT"])
        self.assertEqual([s.key for s in WIZARDS[AdminWizard.GIFT_RATES].steps],
                         ["Amazon", "Apple", "Google Play", "Steam"])
        self.assertEqual([s.key for s in WIZARDS[AdminWizard.WALLETS].steps], ["BTC", "ETH", "USDT"])

    def test_parsers(self):
        self.assertEqual(parse_crypto_rate(" 42.5 "), 42.5)
        self.assertEqual(parse_gift_rate("1"), 1.0)
        self.assertEqual(parse_wallet_address(" bc1q "), "bc1q")
        with self.assertRaises(ValidationError):
            parse_crypto_rate("0")
        with self.assertRaises(ValidationError):
            parse_gift_rate("1.0001")
        with self.assertRaises(ValidationError):
            parse_wallet_address("<br>")


if __name__ == "__main__":
    unittest.main()
