"""
memory_store.py - Durable Store Contract and In-Process Store

BaseStore documents the operations the core needs from persistence.
MemoryStore keeps everything in process memory (default backend and
the backend used by tests). The Google Sheets backend lives in
sheets_helper.SheetsStore.
"""

import threading
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from config.errors import DuplicateSubmissionError, NotFoundError, AlreadyProcessedError
from models import Settings, Transaction, TransactionStatus, TransactionType, User


class BaseStore:
    """Operations the core needs from the durable store."""

    def find_user_by_session(self, session_id: str) -> Optional[User]:
        raise NotImplementedError

    def upsert_user(self, session_id: str, username: str) -> User:
        raise NotImplementedError

    def create_transaction(self, draft: Transaction) -> Transaction:
        """
        Insert draft as a new PENDING record.

        Must be atomic with the duplicate check: raises
        DuplicateSubmissionError if a PENDING record with the same
        (user_id, type) already exists.
        """
        raise NotImplementedError

    def find_transaction_by_id(self, tx_id: str) -> Optional[Transaction]:
        raise NotImplementedError

    def find_pending_transaction(self, user_id: str,
                                 tx_type: TransactionType) -> Optional[Transaction]:
        raise NotImplementedError

    def update_transaction(self, tx_id: str, changes: Dict,
                           expected_status: TransactionStatus = TransactionStatus.PENDING) -> Transaction:
        """
        Apply changes only while the record is in expected_status.

        Raises NotFoundError for unknown ids and AlreadyProcessedError when
        the record has moved on.
        """
        raise NotImplementedError

    def count_and_list_transactions(self, user_id: str, skip: int,
                                    limit: int) -> Tuple[int, List[Transaction]]:
        """Return (total, page) newest first."""
        raise NotImplementedError

    def get_settings(self) -> Optional[Settings]:
        raise NotImplementedError

    def upsert_settings(self, settings: Settings) -> Settings:
        raise NotImplementedError


def new_transaction_id() -> str:
    return uuid.uuid4().hex


class MemoryStore(BaseStore):
    """Thread-safe in-process store."""

    def __init__(self):
        self._lock = threading.RLock()
        self._users: Dict[str, User] = {}
        self._transactions: Dict[str, Transaction] = {}
        self._settings: Optional[Settings] = None

    # ---------------- users ----------------

    def find_user_by_session(self, session_id: str) -> Optional[User]:
        with self._lock:
            return self._users.get(str(session_id))

    def upsert_user(self, session_id: str, username: str) -> User:
        key = str(session_id)
        with self._lock:
            user = self._users.get(key)
            if user is None:
                user = User(session_id=key, username=username)
            else:
                user = replace(user, username=username)
            self._users[key] = user
            return user

    # ---------------- transactions ----------------

    def create_transaction(self, draft: Transaction) -> Transaction:
        with self._lock:
            if self._find_pending(draft.user_id, draft.type):
                raise DuplicateSubmissionError(
                    f"pending {draft.type.value} exists for {draft.user_id}")
            now = datetime.now()
            tx = replace(draft, id=new_transaction_id(),
                         status=TransactionStatus.PENDING,
                         created_at=now, updated_at=now)
            self._transactions[tx.id] = tx
            return replace(tx)

    def find_transaction_by_id(self, tx_id: str) -> Optional[Transaction]:
        with self._lock:
            tx = self._transactions.get(str(tx_id))
            return replace(tx) if tx else None

    def find_pending_transaction(self, user_id: str,
                                 tx_type: TransactionType) -> Optional[Transaction]:
        with self._lock:
            tx = self._find_pending(user_id, tx_type)
            return replace(tx) if tx else None

    def _find_pending(self, user_id: str, tx_type: TransactionType) -> Optional[Transaction]:
        for tx in self._transactions.values():
            if (tx.user_id == str(user_id) and tx.type == tx_type
                    and tx.status == TransactionStatus.PENDING):
                return tx
        return None

    def update_transaction(self, tx_id: str, changes: Dict,
                           expected_status: TransactionStatus = TransactionStatus.PENDING) -> Transaction:
        with self._lock:
            tx = self._transactions.get(str(tx_id))
            if tx is None:
                raise NotFoundError(f"transaction {tx_id} not found")
            if tx.status != expected_status:
                raise AlreadyProcessedError(f"transaction {tx_id} is {tx.status.value}")
            updated = replace(tx, updated_at=datetime.now(), **changes)
            self._transactions[updated.id] = updated
            return replace(updated)

    def count_and_list_transactions(self, user_id: str, skip: int,
                                    limit: int) -> Tuple[int, List[Transaction]]:
        with self._lock:
            owned = [tx for tx in reversed(list(self._transactions.values()))
                     if tx.user_id == str(user_id)]
        # Stable sort: equal timestamps stay newest-inserted first
        owned.sort(key=lambda t: t.created_at, reverse=True)
        return len(owned), [replace(t) for t in owned[skip:skip + limit]]

    # ---------------- settings ----------------

    def get_settings(self) -> Optional[Settings]:
        with self._lock:
            return self._settings

    def upsert_settings(self, settings: Settings) -> Settings:
        with self._lock:
            self._settings = settings
            return settings
