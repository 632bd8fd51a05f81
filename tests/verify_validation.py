import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from models import Artifact
from security import (
    mask_sensitive_data,
    sanitize_text,
    validate_amount,
    validate_crypto_type,
    validate_gift_card_type,
    validate_upload,
)


class ValidateAmountTests(unittest.TestCase):
    def test_accepts_positive_numbers_within_ceiling(self):
        for value in ("0.5", "1", "1000000", 25.75, 3, " 42 "):
            self.assertTrue(validate_amount(value), value)

    def test_rejects_zero_negative_and_over_ceiling(self):
        for value in ("0", "-1", "1000000.01", 0, -5):
            self.assertFalse(validate_amount(value), value)

    def test_rejects_non_numeric_and_non_finite(self):
        for value in ("abc", "", "   ", None, "nan", "inf", "-inf", "1e400", True):
            self.assertFalse(validate_amount(value), value)

    def test_rejects_non_decimal_literals(self):
        for value in ("1_000", "\u0661\u0662", "\uff15", "0x10", "1,000"):
            self.assertFalse(validate_amount(value), value)


class EnumValidationTests(unittest.TestCase):
    def test_crypto_types_are_a_closed_set(self):
        for crypto in ("BTC", "ETH", "USDT"):
            self.assertTrue(validate_crypto_type(crypto))
        self.assertFalse(validate_crypto_type("btc"))
        self.assertFalse(validate_crypto_type("DOGE"))
        self.assertFalse(validate_crypto_type(None))

    def test_gift_card_types_are_a_closed_set(self):
        for brand in ("Amazon", "Apple", "Google Play", "Steam"):
            self.assertTrue(validate_gift_card_type(brand))
        self.assertFalse(validate_gift_card_type("Google"))
        self.assertFalse(validate_gift_card_type("Netflix"))


class SanitizeTextTests(unittest.TestCase):
    def test_strips_markup(self):
        self.assertEqual(sanitize_text("<b>abc</b>123"), "abc123")
        self.assertEqual(sanitize_text("<script>alert(1)</script>hash"), "alert(1)hash")

    def test_truncates_to_limit(self):
        self.assertEqual(len(sanitize_text("x" * 5000)), 1000)

    def test_empty_input(self):
        self.assertEqual(sanitize_text(None), "")
        self.assertEqual(sanitize_text(""), "")

    def test_plain_text_unchanged(self):
        self.assertEqual(sanitize_text("0xabc123 def"), "0xabc123 def")


class ValidateUploadTests(unittest.TestCase):
    def test_photo_within_size_is_accepted(self):
        self.assertTrue(validate_upload(Artifact("f1", "photo", file_size=2048)))

    def test_photo_without_size_is_accepted(self):
        self.assertTrue(validate_upload(Artifact("f1", "photo")))

    def test_oversized_upload_is_rejected(self):
        too_big = 10 * 1024 * 1024 + 1
        self.assertFalse(validate_upload(Artifact("f1", "photo", file_size=too_big)))
        self.assertFalse(validate_upload(Artifact("f2", "document", file_size=too_big,
                                                  mime_type="application/pdf")))

    def test_document_mime_allowlist(self):
        self.assertTrue(validate_upload(Artifact("d1", "document", 100, "application/pdf")))
        self.assertTrue(validate_upload(Artifact("d2", "document", 100, "image/png")))
        self.assertFalse(validate_upload(Artifact("d3", "document", 100, "application/zip")))

    def test_document_without_mime_is_accepted(self):
        self.assertTrue(validate_upload(Artifact("d4", "document", 100, None)))

    def test_missing_or_unknown_artifact_is_rejected(self):
        self.assertFalse(validate_upload(None))
        self.assertFalse(validate_upload(Artifact("", "photo")))
        self.assertFalse(validate_upload(Artifact("v1", "voice", 100)))


class MaskSensitiveDataTests(unittest.TestCase):
    def test_masks_bot_token_in_url(self):
        token = "123456789:" + "A" * 35
        masked = mask_sensitive_data(f"https://api.telegram.org/bot{token}/sendMessage")
        self.assertNotIn(token, masked)
        self.assertIn("TELEGRAM_TOKEN_HIDDEN", masked)

    def test_leaves_plain_text(self):
        self.assertEqual(mask_sensitive_data("user 42 sent text"), "user 42 sent text")


if __name__ == "__main__":
    unittest.main()
