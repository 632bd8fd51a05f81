import os
import sys
import unittest
from unittest.mock import MagicMock

import requests

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from models import EventKind
from telegram_helper import TelegramSender, build_inline_keyboard, parse_telegram_update


class ParseUpdateTests(unittest.TestCase):
    def test_text_message(self):
        event = parse_telegram_update({
            "update_id": 1,
            "message": {"chat": {"id": 42}, "from": {"id": 42, "username": "alice"}, "text": "0.5"},
        })
        self.assertEqual(event.session_id, "42")
        self.assertEqual(event.kind, EventKind.TEXT)
        self.assertEqual(event.text, "0.5")
        self.assertEqual(event.display_name, "alice")

    def test_photo_uses_largest_size(self):
        event = parse_telegram_update({
            "message": {
                "chat": {"id": 42}, "from": {"id": 42, "first_name": "Al", "last_name": "Ice"},
                "photo": [
                    {"file_id": "small", "file_size": 100},
                    {"file_id": "large", "file_size": 5000},
                ],
            },
        })
        self.assertEqual(event.kind, EventKind.FILE)
        self.assertEqual(event.artifact.file_id, "large")
        self.assertEqual(event.artifact.kind, "photo")
        self.assertEqual(event.artifact.file_size, 5000)
        self.assertEqual(event.display_name, "Al Ice")

    def test_document(self):
        event = parse_telegram_update({
            "message": {
                "chat": {"id": 7}, "from": {"id": 7},
                "document": {"file_id": "doc", "file_size": 10, "mime_type": "application/pdf"},
            },
        })
        self.assertEqual(event.artifact.kind, "document")
        self.assertEqual(event.artifact.mime_type, "application/pdf")
        self.assertEqual(event.display_name, "Unknown")

    def test_callback_query(self):
        event = parse_telegram_update({
            "callback_query": {
                "id": "cbq-1", "data": "buy_btc",
                "from": {"id": 99, "username": "admin"},
                "message": {"chat": {"id": 99}},
            },
        })
        self.assertEqual(event.kind, EventKind.BUTTON)
        self.assertEqual(event.session_id, "99")
        self.assertEqual(event.data, "buy_btc")
        self.assertEqual(event.callback_id, "cbq-1")

    def test_unhandled_updates(self):
        self.assertIsNone(parse_telegram_update({"edited_message": {"chat": {"id": 1}, "text": "x"}}))
        self.assertIsNone(parse_telegram_update({"message": {"chat": {"id": 1}, "sticker": {}}}))
        self.assertIsNone(parse_telegram_update({"message": {"text": "no chat"}}))
        self.assertIsNone(parse_telegram_update(None))


class TelegramSenderTests(unittest.TestCase):
    def _sender(self, status=200, body=None, error=None):
        session = MagicMock()
        if error is not None:
            session.post.side_effect = error
        else:
            response = MagicMock(status_code=status, text="")
            response.json.return_value = body if body is not None else {"ok": True}
            session.post.return_value = response
        return TelegramSender(token="123:abc", session=session), session

    def test_send_with_buttons(self):
        sender, session = self._sender()
        self.assertTrue(sender.send("42", "hi", [[("Buy Crypto", "buy_crypto")]]))

        url = session.post.call_args[0][0]
        payload = session.post.call_args[1]["json"]
        self.assertTrue(url.endswith("/sendMessage"))
        self.assertEqual(payload["chat_id"], "42")
        self.assertEqual(payload["reply_markup"],
                         {"inline_keyboard": [[{"text": "Buy Crypto", "callback_data": "buy_crypto"}]]})

    def test_acknowledge(self):
        sender, session = self._sender()
        self.assertTrue(sender.acknowledge("cbq-1", "Unauthorized access."))
        payload = session.post.call_args[1]["json"]
        self.assertEqual(payload, {"callback_query_id": "cbq-1", "text": "Unauthorized access."})

    def test_failures_return_false(self):
        sender, _ = self._sender(status=500)
        self.assertFalse(sender.send("42", "hi"))
        sender, _ = self._sender(body={"ok": False})
        self.assertFalse(sender.send("42", "hi"))
        sender, _ = self._sender(error=requests.ConnectionError("down"))
        self.assertFalse(sender.send("42", "hi"))

    def test_missing_token_skips_call(self):
        session = MagicMock()
        sender = TelegramSender(token=None, session=session)
        self.assertFalse(sender.send("42", "hi"))
        session.post.assert_not_called()

    def test_build_inline_keyboard_rows(self):
        markup = build_inline_keyboard([[("A", "a"), ("B", "b")], [("C", "c")]])
        self.assertEqual(len(markup["inline_keyboard"]), 2)
        self.assertEqual(markup["inline_keyboard"][0][1]["callback_data"], "b")


if __name__ == "__main__":
    unittest.main()
