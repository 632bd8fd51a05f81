"""
constants.py - Bot Constants and Configuration

Contains:
- Asset enumerations (crypto types, gift card brands)
- Default rates and wallets for the first boot
- Store backend selection (memory / Google Sheets)
- Timeouts: Time-related constants
- Limits: Input and upload bounds
- Commands: Bot command aliases
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# ===================== ASSETS =====================

CRYPTO_TYPES = ('BTC', 'ETH', 'USDT')
GIFT_CARD_TYPES = ('Amazon', 'Apple', 'Google Play', 'Steam')

CRYPTO_NAMES = {
    'BTC': 'Bitcoin',
    'ETH': 'Ethereum',
    'USDT': 'Tether',
}

# Callback codes used in menu buttons (sell_google -> Google Play)
GIFT_CARD_CODES = {
    'amazon': 'Amazon',
    'apple': 'Apple',
    'google': 'Google Play',
    'steam': 'Steam',
}

# ===================== DEFAULT SETTINGS =====================

DEFAULT_CRYPTO_RATES = {
    'BTC': 50000.0,
    'ETH': 3000.0,
    'USDT': 1.0,
}

DEFAULT_GIFT_CARD_RATES = {
    'Amazon': 0.85,
    'Apple': 0.80,
    'Google Play': 0.82,
    'Steam': 0.88,
}

DEFAULT_WALLETS = {
    'BTC': os.getenv('WALLET_BTC', ''),
    'ETH': os.getenv('WALLET_ETH', ''),
    'USDT': os.getenv('WALLET_USDT', ''),
}

# ===================== TRANSPORT / STORE =====================

TELEGRAM_BOT_TOKEN = os.getenv('TELEGRAM_BOT_TOKEN')
ADMIN_CHAT_ID = (os.getenv('ADMIN_CHAT_ID') or '').strip()

# 'memory' keeps records in-process, 'sheets' uses Google Sheets
STORE_BACKEND = os.getenv('STORE_BACKEND', 'memory').strip().lower()

# Google Sheets configuration
SPREADSHEET_ID = os.getenv('GOOGLE_SHEETS_ID')
CREDENTIALS_FILE = os.getenv('CREDENTIALS_FILE', 'credentials.json')

# Scopes for Google API
SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive'
]

USERS_SHEET_NAME = "Users"
TRANSACTIONS_SHEET_NAME = "Transactions"
SETTINGS_SHEET_NAME = "Settings"


# ===================== TIMEOUTS =====================

class Timeouts:
    """Time-related constants in seconds."""
    SESSION_IDLE = int(os.getenv('SESSION_IDLE_TTL_SECONDS', str(60 * 60)))  # abandoned dialogues
    RATE_LIMIT_WINDOW = int(os.getenv('RATE_LIMIT_WINDOW_SECONDS', '60'))
    REQUEST_TIMEOUT = 10           # Bot API request timeout
    UPDATE_DEDUP_MAX = 1000        # Max Telegram update ids to remember


# ===================== LIMITS =====================

class Limits:
    """Input bounds."""
    MAX_AMOUNT = 1_000_000
    MAX_TEXT_LENGTH = 1000
    MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10MB
    ALLOWED_MIME_TYPES = (
        'image/jpeg', 'image/png', 'image/gif', 'image/webp',
        'application/pdf', 'text/plain',
    )
    RATE_LIMIT_EVENTS = int(os.getenv('RATE_LIMIT_MAX_EVENTS', '10'))
    RATE_LIMIT_MAX_KEYS = 1000
    SESSION_MAX_ENTRIES = int(os.getenv('SESSION_MAX_ENTRIES', '10000'))
    HISTORY_PAGE_SIZE = 5


# ===================== COMMANDS =====================

class Commands:
    """
    Bot command aliases - all lowercase for matching.
    """

    START = ['/start', '/menu']
    HELP = ['/help']

    # Recognised in every dialogue step
    CANCEL = 'cancel'


# For testing
if __name__ == '__main__':
    print("Constants Configuration Test")
    print(f"Crypto types: {CRYPTO_TYPES}")
    print(f"Gift card types: {GIFT_CARD_TYPES}")
    print(f"Store backend: {STORE_BACKEND}")
