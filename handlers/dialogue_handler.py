"""
handlers/dialogue_handler.py - User Dialogue Steps

Each Step has one handler. "cancel" is checked before any of them and
discards the dialogue without persisting anything.

Flows:
    buy:   WAITING_AMOUNT -> WAITING_PROOF -> submit
    sell:  WAITING_AMOUNT_SELL -> WAITING_TX_SELL -> submit (+admin review)
    gift:  WAITING_GIFT_DETAILS -> WAITING_GIFT_UPLOAD -> submit (+admin review)
    payout: WAITING_PAYMENT_DETAILS -> COMPLETED
"""

import logging
from dataclasses import replace
from typing import Optional, Tuple

from config.errors import DuplicateSubmissionError, NotFoundError, UserErrors, ValidationError
from handlers.menu_handler import BACK_ROW, review_keyboard, show_main_menu
from messages import MSG, fmt
from models import Dialogue, EventKind, Step, Transaction, TransactionType, User
from security import sanitize_text, validate_amount, validate_upload
from utils.parsers import is_cancel, parse_gift_details

logger = logging.getLogger(__name__)


def _text(event) -> Optional[str]:
    return event.text if event.kind is EventKind.TEXT else None


def _read_evidence(event, invalid_file: str, missing: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Read an upload or a free-text code from the event.

    Returns:
        (file_id, text) with exactly one of them set

    Raises:
        ValidationError: bad upload, or neither upload nor usable text
    """
    if event.kind is EventKind.FILE:
        if not validate_upload(event.artifact):
            raise ValidationError(invalid_file)
        return event.artifact.file_id, None

    text = sanitize_text(_text(event)).strip()
    if text and not text.startswith('/'):
        return None, text

    raise ValidationError(missing)


def _submit(engine, user: User, draft: Transaction, label: str, notify=None) -> None:
    session_id = user.session_id
    engine.sessions.pop(session_id)

    try:
        tx = engine.workflow.submit(user, draft)
    except DuplicateSubmissionError:
        show_main_menu(engine, session_id, UserErrors.DUPLICATE_PENDING)
        return

    engine.send(session_id, fmt.submitted(tx, label), [BACK_ROW])
    if notify is not None:
        engine.notify_admins(notify(tx, user), review_keyboard(tx.id))


# ===================== STEP HANDLERS =====================

def _buy_amount(engine, event, user, dialogue):
    text = _text(event)
    if not validate_amount(text):
        engine.send(user.session_id, UserErrors.INVALID_AMOUNT)
        return

    amount = float(text.strip())
    rate = engine.settings.crypto_rate(dialogue.crypto_type)
    fiat_amount = amount * rate
    engine.sessions.set(user.session_id, replace(
        dialogue, step=Step.WAITING_PROOF, amount=amount, rate=rate, fiat_amount=fiat_amount))
    engine.send(user.session_id, fmt.buy_summary(dialogue.crypto_type, amount, rate, fiat_amount))


def _sell_amount(engine, event, user, dialogue):
    text = _text(event)
    if not validate_amount(text):
        engine.send(user.session_id, UserErrors.INVALID_AMOUNT)
        return

    amount = float(text.strip())
    wallet = engine.settings.wallet(dialogue.crypto_type)
    if not wallet:
        logger.warning("No %s wallet configured, sell aborted", dialogue.crypto_type)
        engine.sessions.pop(user.session_id)
        show_main_menu(engine, user.session_id, UserErrors.WALLET_NOT_CONFIGURED)
        return

    engine.sessions.set(user.session_id, replace(dialogue, step=Step.WAITING_TX_SELL, amount=amount))
    engine.send(user.session_id, fmt.sell_instructions(dialogue.crypto_type, amount, wallet))


def _payment_proof(engine, event, user, dialogue):
    if event.kind is not EventKind.FILE:
        engine.send(user.session_id, MSG.PROOF_PROMPT)
        return
    if not validate_upload(event.artifact):
        engine.send(user.session_id, UserErrors.INVALID_FILE_PROOF)
        return

    draft = Transaction(
        user_id=user.session_id,
        type=TransactionType.BUY,
        crypto_type=dialogue.crypto_type,
        amount=dialogue.amount,
        rate=dialogue.rate,
        fiat_amount=dialogue.fiat_amount,
        payment_proof=event.artifact.file_id,
    )
    _submit(engine, user, draft, "Transaction created")


def _sell_evidence(engine, event, user, dialogue):
    try:
        screenshot, tx_hash = _read_evidence(
            event, UserErrors.INVALID_FILE_SELL, UserErrors.MISSING_SELL_EVIDENCE)
    except ValidationError as e:
        engine.send(user.session_id, str(e))
        return

    # Sell payout is priced at review time
    draft = Transaction(
        user_id=user.session_id,
        type=TransactionType.SELL,
        crypto_type=dialogue.crypto_type,
        amount=dialogue.amount,
        rate=0.0,
        fiat_amount=0.0,
        tx_hash=tx_hash,
        screenshot=screenshot,
    )
    _submit(engine, user, draft, "Sell transaction submitted", notify=fmt.admin_new_sell)


def _gift_details(engine, event, user, dialogue):
    try:
        card_value, country = parse_gift_details(_text(event))
    except ValidationError as e:
        engine.send(user.session_id, str(e))
        return

    rate = engine.settings.gift_card_rate(dialogue.gift_type)
    payout = card_value * rate
    engine.sessions.set(user.session_id, replace(
        dialogue, step=Step.WAITING_GIFT_UPLOAD, card_value=card_value,
        country=country, rate=rate, fiat_amount=payout))
    engine.send(user.session_id, fmt.gift_summary(dialogue.gift_type, card_value, country, rate, payout))


def _gift_evidence(engine, event, user, dialogue):
    try:
        card_image, card_code = _read_evidence(
            event, UserErrors.INVALID_FILE_GIFT, UserErrors.MISSING_GIFT_EVIDENCE)
    except ValidationError as e:
        engine.send(user.session_id, str(e))
        return

    draft = Transaction(
        user_id=user.session_id,
        type=TransactionType.SELL_GIFT_CARD,
        gift_type=dialogue.gift_type,
        card_value=dialogue.card_value,
        country=dialogue.country,
        rate=dialogue.rate,
        fiat_amount=dialogue.fiat_amount,
        card_image=card_image,
        card_code=card_code,
    )
    _submit(engine, user, draft, "Gift card transaction submitted", notify=fmt.admin_new_gift)


def _payment_details(engine, event, user, dialogue):
    details = sanitize_text(_text(event)).strip()
    if not details:
        engine.send(user.session_id, UserErrors.EMPTY_PAYMENT_DETAILS)
        return

    engine.sessions.pop(user.session_id)
    try:
        tx = engine.workflow.complete(dialogue.tx_id, details)
    except NotFoundError:
        show_main_menu(engine, user.session_id, UserErrors.TX_NOT_FOUND)
        return

    engine.send(user.session_id, fmt.completed(tx), [BACK_ROW])
    engine.notify_admins(fmt.admin_completed(tx))


STEP_HANDLERS = {
    Step.WAITING_AMOUNT: _buy_amount,
    Step.WAITING_AMOUNT_SELL: _sell_amount,
    Step.WAITING_PROOF: _payment_proof,
    Step.WAITING_TX_SELL: _sell_evidence,
    Step.WAITING_GIFT_DETAILS: _gift_details,
    Step.WAITING_GIFT_UPLOAD: _gift_evidence,
    Step.WAITING_PAYMENT_DETAILS: _payment_details,
}


def handle_dialogue_input(engine, event, user: User, dialogue: Dialogue) -> None:
    """Route a message from a user with an active dialogue."""
    if is_cancel(_text(event)):
        engine.sessions.pop(user.session_id)
        show_main_menu(engine, user.session_id, MSG.CANCELLED)
        return

    STEP_HANDLERS[dialogue.step](engine, event, user, dialogue)
