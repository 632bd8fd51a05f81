"""
transaction_service.py - Transaction Workflow

Lifecycle of a request:
    submit  -> PENDING
    approve -> (still PENDING, user is asked for payment details)
    complete -> COMPLETED
    reject  -> REJECTED

Terminal states are final: every transition is applied by the store
only while the record is still PENDING.
"""

import math
import logging
from dataclasses import dataclass, replace
from typing import List

from config.constants import Limits
from config.errors import (
    AlreadyProcessedError, DuplicateSubmissionError, NotFoundError, StoreError, ValidationError,
)
from models import Transaction, TransactionStatus, User

logger = logging.getLogger(__name__)


@dataclass
class HistoryPage:
    items: List[Transaction]
    page: int
    total_pages: int
    total: int
    page_size: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def _store_call(func, *args, **kwargs):
    """Run a store call, mapping unexpected failures to StoreError."""
    try:
        return func(*args, **kwargs)
    except (DuplicateSubmissionError, NotFoundError, StoreError):
        raise
    except Exception as e:
        raise StoreError(f"{func.__name__} failed: {type(e).__name__}") from e


class TransactionWorkflow:

    def __init__(self, store):
        self.store = store

    def submit(self, user: User, draft: Transaction) -> Transaction:
        """
        Persist draft as a new PENDING transaction.

        Raises:
            DuplicateSubmissionError: user already has a PENDING one of this type
            ValidationError: draft carries no evidence
            StoreError: store failure
        """
        if not draft.has_evidence:
            raise ValidationError("transaction has no evidence")
        draft = replace(draft, user_id=user.session_id, status=TransactionStatus.PENDING)
        tx = _store_call(self.store.create_transaction, draft)
        logger.info("Transaction %s submitted (%s) by %s", tx.id, tx.type.value, user.session_id)
        return tx

    def get(self, tx_id: str) -> Transaction:
        tx = _store_call(self.store.find_transaction_by_id, tx_id)
        if tx is None:
            raise NotFoundError(f"transaction {tx_id} not found")
        return tx

    def get_pending(self, tx_id: str) -> Transaction:
        tx = self.get(tx_id)
        if tx.status.is_terminal:
            raise AlreadyProcessedError(f"transaction {tx_id} is {tx.status.value}")
        return tx

    def approve(self, tx_id: str, admin_id: str) -> Transaction:
        """
        Validate that the transaction can be approved.

        Status is unchanged; the caller starts the user's payment details
        dialogue, and complete() finishes the transition.
        """
        tx = self.get_pending(tx_id)
        logger.info("Transaction %s approved by admin %s", tx_id, admin_id)
        return tx

    def reject(self, tx_id: str, reason: str, admin_id: str) -> Transaction:
        tx = _store_call(
            self.store.update_transaction, tx_id,
            {'status': TransactionStatus.REJECTED, 'reject_reason': reason},
        )
        logger.info("Transaction %s rejected by admin %s", tx_id, admin_id)
        return tx

    def complete(self, tx_id: str, payment_details: str) -> Transaction:
        tx = _store_call(
            self.store.update_transaction, tx_id,
            {'status': TransactionStatus.COMPLETED, 'payment_details': payment_details},
        )
        logger.info("Transaction %s completed", tx_id)
        return tx

    def list_page(self, user_id: str, page: int = 1,
                  page_size: int = Limits.HISTORY_PAGE_SIZE) -> HistoryPage:
        """Newest-first page of a user's transactions; page is clamped to range."""
        page = max(1, int(page))
        total, items = _store_call(self.store.count_and_list_transactions,
                                   user_id, (page - 1) * page_size, page_size)
        total_pages = max(1, math.ceil(total / page_size))
        if total and page > total_pages:
            page = total_pages
            total, items = _store_call(self.store.count_and_list_transactions,
                                       user_id, (page - 1) * page_size, page_size)
        return HistoryPage(items=items, page=page, total_pages=total_pages,
                           total=total, page_size=page_size)
