import os
import gspread
import json
import threading
import requests
from dataclasses import replace
from datetime import datetime
from functools import wraps
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from typing import Dict, List, Optional, Tuple

from config.constants import (
    SPREADSHEET_ID, CREDENTIALS_FILE, SCOPES,
    USERS_SHEET_NAME, TRANSACTIONS_SHEET_NAME, SETTINGS_SHEET_NAME,
)
from config.errors import AlreadyProcessedError, DuplicateSubmissionError, NotFoundError, StoreError
from models import Settings, Transaction, TransactionStatus, TransactionType, User
from security import secure_log
from services.memory_store import BaseStore, new_transaction_id

# Sheet layouts (row 1 is the header)
USER_HEADERS = ['session_id', 'username', 'created_at']
TRANSACTION_HEADERS = [
    'id', 'user_id', 'type', 'status',
    'crypto_type', 'amount', 'rate', 'fiat_amount',
    'gift_type', 'card_value', 'country',
    'payment_proof', 'tx_hash', 'screenshot', 'card_image', 'card_code',
    'payment_details', 'reject_reason',
    'created_at', 'updated_at',
]
SETTINGS_HEADERS = ['version', 'crypto_rates', 'gift_card_rates', 'wallets', 'updated_by', 'updated_at']

# Global instances
_client = None
_spreadsheet = None

# Read-check-write sequences against the sheet run one at a time per process
_store_lock = threading.RLock()


def authenticate():
    """
    Authenticate with Google Sheets API using Service Account.

    Supports two methods:
    1. GOOGLE_CREDENTIALS env var (JSON string) - for production
    2. credentials.json file - for local development
    """
    global _client

    if _client is not None:
        return _client

    creds = None

    # Method 1: Try environment variable first (production)
    google_creds_json = os.getenv('GOOGLE_CREDENTIALS')
    if google_creds_json:
        try:
            creds_dict = json.loads(google_creds_json)
            creds = Credentials.from_service_account_info(creds_dict, scopes=SCOPES)
            secure_log("INFO", "Authenticated via GOOGLE_CREDENTIALS env var")
        except Exception as e:
            secure_log("ERROR", f"Failed to parse GOOGLE_CREDENTIALS: {type(e).__name__}")

    # Method 2: Try credentials file (local development)
    if not creds and os.path.exists(CREDENTIALS_FILE):
        try:
            creds = Credentials.from_service_account_file(CREDENTIALS_FILE, scopes=SCOPES)
            secure_log("INFO", f"Authenticated via {CREDENTIALS_FILE} file")
        except Exception as e:
            secure_log("ERROR", f"Failed to load {CREDENTIALS_FILE}: {type(e).__name__}")

    if not creds:
        raise FileNotFoundError(
            "Google credentials not found! Set GOOGLE_CREDENTIALS env var "
            f"or provide {CREDENTIALS_FILE} file."
        )

    _client = gspread.authorize(creds)
    secure_log("INFO", "Google Sheets authentication successful")
    return _client


def get_spreadsheet():
    """Get the main spreadsheet."""
    global _spreadsheet

    if _spreadsheet is not None:
        return _spreadsheet

    client = authenticate()
    _spreadsheet = client.open_by_key(SPREADSHEET_ID)
    return _spreadsheet


# ===================== ROW CONVERSION =====================

def _text(value) -> Optional[str]:
    text = str(value).strip() if value is not None else ''
    return text or None


def _float(value, default=None) -> Optional[float]:
    text = _text(value)
    if text is None:
        return default
    try:
        return float(text)
    except ValueError:
        return default


def _datetime(value) -> datetime:
    text = _text(value)
    if text:
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
    return datetime.now()


def _cell(value) -> str:
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, 'value'):  # enums
        return value.value
    return str(value)


def transaction_to_row(tx: Transaction) -> List[str]:
    return [_cell(getattr(tx, name)) for name in TRANSACTION_HEADERS]


def row_to_transaction(record: Dict) -> Transaction:
    return Transaction(
        id=str(record.get('id', '')),
        user_id=str(record.get('user_id', '')),
        type=TransactionType(record.get('type')),
        status=TransactionStatus(record.get('status') or 'PENDING'),
        crypto_type=_text(record.get('crypto_type')),
        amount=_float(record.get('amount'), 0.0),
        rate=_float(record.get('rate'), 0.0),
        fiat_amount=_float(record.get('fiat_amount'), 0.0),
        gift_type=_text(record.get('gift_type')),
        card_value=_float(record.get('card_value')),
        country=_text(record.get('country')),
        payment_proof=_text(record.get('payment_proof')),
        tx_hash=_text(record.get('tx_hash')),
        screenshot=_text(record.get('screenshot')),
        card_image=_text(record.get('card_image')),
        card_code=_text(record.get('card_code')),
        payment_details=_text(record.get('payment_details')),
        reject_reason=_text(record.get('reject_reason')),
        created_at=_datetime(record.get('created_at')),
        updated_at=_datetime(record.get('updated_at')),
    )


def settings_to_row(settings: Settings) -> List[str]:
    return [
        str(settings.version),
        json.dumps(dict(settings.crypto_rates)),
        json.dumps(dict(settings.gift_card_rates)),
        json.dumps(dict(settings.wallets)),
        settings.updated_by or '',
        settings.updated_at.isoformat(),
    ]


def row_to_settings(record: Dict) -> Settings:
    return Settings(
        crypto_rates=json.loads(record.get('crypto_rates') or '{}'),
        gift_card_rates=json.loads(record.get('gift_card_rates') or '{}'),
        wallets=json.loads(record.get('wallets') or '{}'),
        updated_by=_text(record.get('updated_by')),
        updated_at=_datetime(record.get('updated_at')),
        version=int(_float(record.get('version'), 1)),
    )


def _row_range(row: int, width: int) -> str:
    return f"{rowcol_to_a1(row, 1)}:{rowcol_to_a1(row, width)}"


def sheets_call(func):
    """Map gspread / HTTP failures to StoreError."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (gspread.exceptions.GSpreadException, requests.RequestException,
                FileNotFoundError, ValueError) as e:
            secure_log("ERROR", f"Sheets {func.__name__} failed: {type(e).__name__}")
            raise StoreError(f"{func.__name__} failed: {type(e).__name__}") from e
    return wrapper


# ===================== STORE =====================

class SheetsStore(BaseStore):
    """
    Google Sheets backend.

    One worksheet per record kind; worksheets are created with their
    header row on first use. All values are written RAW and read back
    as strings, so ids are never reformatted by Sheets.
    """

    def __init__(self, spreadsheet=None):
        self._spreadsheet = spreadsheet
        self._worksheets = {}

    @property
    def spreadsheet(self):
        if self._spreadsheet is None:
            self._spreadsheet = get_spreadsheet()
        return self._spreadsheet

    def _sheet(self, name: str, headers: List[str]):
        """Get worksheet by name, creating it with headers if missing."""
        ws = self._worksheets.get(name)
        if ws is not None:
            return ws

        try:
            ws = self.spreadsheet.worksheet(name)
            if not ws.row_values(1):
                ws.append_row(headers, value_input_option='RAW')
        except gspread.WorksheetNotFound:
            ws = self.spreadsheet.add_worksheet(title=name, rows=1000, cols=len(headers))
            ws.append_row(headers, value_input_option='RAW')
            secure_log("INFO", f"Created sheet: {name}")

        self._worksheets[name] = ws
        return ws

    def _records(self, name: str, headers: List[str]) -> List[Dict]:
        return self._sheet(name, headers).get_all_records(numericise_ignore=['all'])

    # ---------------- users ----------------

    @sheets_call
    def find_user_by_session(self, session_id: str) -> Optional[User]:
        for record in self._records(USERS_SHEET_NAME, USER_HEADERS):
            if str(record.get('session_id')) == str(session_id):
                return User(session_id=str(session_id),
                            username=_text(record.get('username')) or 'Unknown',
                            created_at=_datetime(record.get('created_at')))
        return None

    @sheets_call
    def upsert_user(self, session_id: str, username: str) -> User:
        key = str(session_id)
        with _store_lock:
            ws = self._sheet(USERS_SHEET_NAME, USER_HEADERS)
            records = ws.get_all_records(numericise_ignore=['all'])
            for index, record in enumerate(records):
                if str(record.get('session_id')) == key:
                    user = User(session_id=key, username=username,
                                created_at=_datetime(record.get('created_at')))
                    if record.get('username') != username:
                        ws.update(range_name=_row_range(index + 2, len(USER_HEADERS)),
                                  values=[[key, username, user.created_at.isoformat()]],
                                  value_input_option='RAW')
                    return user

            user = User(session_id=key, username=username)
            ws.append_row([key, username, user.created_at.isoformat()], value_input_option='RAW')
            return user

    # ---------------- transactions ----------------

    def _find_row(self, tx_id: str) -> Tuple[Optional[int], Optional[Transaction]]:
        records = self._records(TRANSACTIONS_SHEET_NAME, TRANSACTION_HEADERS)
        for index, record in enumerate(records):
            if str(record.get('id')) == str(tx_id):
                return index + 2, row_to_transaction(record)
        return None, None

    @sheets_call
    def create_transaction(self, draft: Transaction) -> Transaction:
        with _store_lock:
            existing = self.find_pending_transaction(draft.user_id, draft.type)
            if existing is not None:
                raise DuplicateSubmissionError(
                    f"pending {draft.type.value} exists for {draft.user_id}")

            now = datetime.now()
            tx = replace(draft, id=new_transaction_id(), status=TransactionStatus.PENDING,
                         created_at=now, updated_at=now)
            self._sheet(TRANSACTIONS_SHEET_NAME, TRANSACTION_HEADERS).append_row(
                transaction_to_row(tx), value_input_option='RAW')
            secure_log("INFO", f"Transaction {tx.id} appended", type=tx.type.value)
            return tx

    @sheets_call
    def find_transaction_by_id(self, tx_id: str) -> Optional[Transaction]:
        return self._find_row(tx_id)[1]

    @sheets_call
    def find_pending_transaction(self, user_id: str,
                                 tx_type: TransactionType) -> Optional[Transaction]:
        for record in self._records(TRANSACTIONS_SHEET_NAME, TRANSACTION_HEADERS):
            if (str(record.get('user_id')) == str(user_id)
                    and record.get('type') == tx_type.value
                    and record.get('status') == TransactionStatus.PENDING.value):
                return row_to_transaction(record)
        return None

    @sheets_call
    def update_transaction(self, tx_id: str, changes: Dict,
                           expected_status: TransactionStatus = TransactionStatus.PENDING) -> Transaction:
        with _store_lock:
            row, tx = self._find_row(tx_id)
            if tx is None:
                raise NotFoundError(f"transaction {tx_id} not found")
            if tx.status != expected_status:
                raise AlreadyProcessedError(f"transaction {tx_id} is {tx.status.value}")

            updated = replace(tx, updated_at=datetime.now(), **changes)
            self._sheet(TRANSACTIONS_SHEET_NAME, TRANSACTION_HEADERS).update(
                range_name=_row_range(row, len(TRANSACTION_HEADERS)),
                values=[transaction_to_row(updated)],
                value_input_option='RAW',
            )
            return updated

    @sheets_call
    def count_and_list_transactions(self, user_id: str, skip: int,
                                    limit: int) -> Tuple[int, List[Transaction]]:
        records = self._records(TRANSACTIONS_SHEET_NAME, TRANSACTION_HEADERS)
        # Rows are appended in time order; newest is last
        owned = [row_to_transaction(r) for r in reversed(records)
                 if str(r.get('user_id')) == str(user_id)]
        return len(owned), owned[skip:skip + limit]

    # ---------------- settings ----------------

    @sheets_call
    def get_settings(self) -> Optional[Settings]:
        records = self._records(SETTINGS_SHEET_NAME, SETTINGS_HEADERS)
        if not records:
            return None
        return row_to_settings(records[0])

    @sheets_call
    def upsert_settings(self, settings: Settings) -> Settings:
        with _store_lock:
            ws = self._sheet(SETTINGS_SHEET_NAME, SETTINGS_HEADERS)
            if ws.get_all_records(numericise_ignore=['all']):
                ws.update(range_name=_row_range(2, len(SETTINGS_HEADERS)),
                          values=[settings_to_row(settings)],
                          value_input_option='RAW')
            else:
                ws.append_row(settings_to_row(settings), value_input_option='RAW')
            secure_log("INFO", f"Settings saved (version {settings.version})")
            return settings


def test_connection() -> bool:
    """Test Google Sheets connection."""
    try:
        get_spreadsheet()
        secure_log("INFO", "Google Sheets connection OK")
        return True
    except Exception as e:
        secure_log("ERROR", f"Sheets connection failed: {type(e).__name__}")
        return False
