"""
main.py - CardKyng Exchange Bot

Features:
- Buy / sell crypto (BTC, ETH, USDT) and sell gift cards via Telegram
- Admin review: approve (user sends payout details) or reject (with reason)
- Admin panel: crypto rates, gift card payout rates, wallet addresses
- Transaction history with paging
- SECURITY: rate limiting, input validation, sanitization, secure logging

WORKFLOW:
1. Telegram posts an update to /telegram
2. Update is decoded into an InboundEvent
3. ConversationEngine advances the user's dialogue
4. Finished dialogues become PENDING transactions for admin review
"""

import logging
import os
import threading
from collections import OrderedDict
from flask import Flask, request, jsonify
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from config.constants import STORE_BACKEND, TELEGRAM_BOT_TOKEN, Timeouts
from handlers.conversation import ConversationEngine
from security import secure_log
from services.memory_store import MemoryStore
from services.settings_service import SettingsCache
from telegram_helper import TelegramSender, parse_telegram_update

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

# Initialize Flask app
app = Flask(__name__)

# Configuration
DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
VERSION = '1.0'


# ===================== ENGINE =====================

_engine = None
_engine_lock = threading.Lock()


def build_store(backend: str = STORE_BACKEND):
    """Create the durable store selected by STORE_BACKEND."""
    if backend == 'sheets':
        from sheets_helper import SheetsStore
        return SheetsStore()
    if backend != 'memory':
        secure_log("WARNING", f"Unknown STORE_BACKEND '{backend}', using memory")
    return MemoryStore()


def get_engine() -> ConversationEngine:
    """Get the process-wide conversation engine (lazy)."""
    global _engine
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                store = build_store()
                settings = SettingsCache(store)
                settings.load()
                _engine = ConversationEngine(store, TelegramSender(), settings=settings)
    return _engine


# ===================== UPDATE DEDUP =====================

# Telegram redelivers an update until it gets a 200
_processed_updates: "OrderedDict[int, None]" = OrderedDict()
_dedup_lock = threading.Lock()


def is_duplicate_update(update_id) -> bool:
    """Remember update_id; True if it was already seen."""
    if update_id is None:
        return False
    with _dedup_lock:
        if update_id in _processed_updates:
            return True
        _processed_updates[update_id] = None
        while len(_processed_updates) > Timeouts.UPDATE_DEDUP_MAX:
            _processed_updates.popitem(last=False)
    return False


# ===================== TELEGRAM HANDLERS =====================

@app.route('/telegram', methods=['POST'])
def webhook_telegram():
    """Webhook endpoint for Telegram Bot. Always answers 200."""
    try:
        update = request.get_json(silent=True)
        if not update:
            return jsonify({'ok': True}), 200

        if is_duplicate_update(update.get('update_id')):
            return jsonify({'ok': True}), 200

        event = parse_telegram_update(update)
        if event is None:
            return jsonify({'ok': True}), 200

        secure_log("INFO", f"Telegram {event.kind.value} from user_id={event.session_id}")
        get_engine().handle(event)
        return jsonify({'ok': True}), 200

    except Exception as e:
        secure_log("ERROR", f"Telegram webhook error: {type(e).__name__}: {e}")
        return jsonify({'ok': True}), 200


# ===================== OTHER ENDPOINTS =====================

@app.route('/health', methods=['GET'])
def health_check():
    return jsonify({
        'status': 'healthy',
        'version': VERSION,
        'store': STORE_BACKEND,
    }), 200


@app.route('/test-sheets', methods=['GET'])
def test_sheets():
    if STORE_BACKEND != 'sheets':
        return jsonify({'success': False, 'reason': 'sheets backend disabled'}), 200
    try:
        from sheets_helper import test_connection
        return jsonify({'success': test_connection()}), 200
    except Exception:
        return jsonify({'success': False}), 500


@app.route('/', methods=['GET'])
def home():
    return jsonify({
        'name': 'CardKyng Exchange Bot',
        'version': VERSION,
        'status': 'running'
    }), 200


# ===================== MAIN =====================

if __name__ == '__main__':
    print("=" * 50)
    print(f"CardKyng Exchange Bot v{VERSION}")
    print("=" * 50)

    print(f"\nStore backend: {STORE_BACKEND}")
    print(f"Telegram: {'✓' if TELEGRAM_BOT_TOKEN else '✗'}")

    print("\nLoading settings...")
    try:
        get_engine()
        print("✓ Settings loaded")
    except Exception as e:
        print(f"✗ Startup error: {type(e).__name__}")

    print("=" * 50)

    app.run(host='0.0.0.0', port=int(os.getenv('PORT', '5000')), debug=DEBUG, use_reloader=False)
