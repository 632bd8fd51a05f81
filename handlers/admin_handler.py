"""
handlers/admin_handler.py - Admin Wizards and Review Actions

Wizards collect one value per step in a fixed order and persist the
whole map only after the last step. "cancel" aborts a wizard without
saving anything.

Review actions:
- approve: transaction stays PENDING, the owner is asked for payment details
- reject: admin is asked for a reason, then the transaction is REJECTED
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List

from config.errors import NotFoundError, StoreError, UserErrors, ValidationError
from handlers.menu_handler import admin_panel_keyboard, show_main_menu
from messages import MSG, fmt
from models import AdminDialogue, AdminWizard, Dialogue, EventKind, Step
from security import sanitize_text
from utils.parsers import is_cancel, parse_number

logger = logging.getLogger(__name__)


# ===================== STEP PARSERS =====================

def parse_crypto_rate(text: str) -> float:
    value = parse_number(text)
    if value is None or value <= 0:
        raise ValidationError(UserErrors.ADMIN_INVALID_RATE)
    return value


def parse_gift_rate(text: str) -> float:
    value = parse_number(text)
    if value is None or value <= 0 or value > 1:
        raise ValidationError(UserErrors.ADMIN_INVALID_GIFT_RATE)
    return value


def parse_wallet_address(text: str) -> str:
    address = sanitize_text(text).strip()
    if not address:
        raise ValidationError(UserErrors.ADMIN_INVALID_WALLET)
    return address


# ===================== WIZARD PLANS =====================

@dataclass(frozen=True)
class WizardStep:
    key: str
    prompt: str
    parse: Callable[[str], object]


@dataclass(frozen=True)
class WizardPlan:
    field: str  # Settings attribute replaced on save
    steps: List[WizardStep]
    saved: str


WIZARDS: Dict[AdminWizard, WizardPlan] = {
    AdminWizard.CRYPTO_RATES: WizardPlan(
        field='crypto_rates',
        steps=[
            WizardStep('BTC', 'Enter the new BTC rate (in USD):', parse_crypto_rate),
            WizardStep('ETH', 'Enter the new ETH rate (in USD):', parse_crypto_rate),
            WizardStep('USDT', 'Enter the new USDT rate (in USD):', parse_crypto_rate),
        ],
        saved=MSG.CRYPTO_RATES_SAVED,
    ),
    AdminWizard.GIFT_RATES: WizardPlan(
        field='gift_card_rates',
        steps=[
            WizardStep('Amazon', 'Enter the new Amazon gift card payout rate (e.g., 0.85 for 85%):',
                       parse_gift_rate),
            WizardStep('Apple', 'Enter the new Apple gift card payout rate:', parse_gift_rate),
            WizardStep('Google Play', 'Enter the new Google Play gift card payout rate:',
                       parse_gift_rate),
            WizardStep('Steam', 'Enter the new Steam gift card payout rate:', parse_gift_rate),
        ],
        saved=MSG.GIFT_RATES_SAVED,
    ),
    AdminWizard.WALLETS: WizardPlan(
        field='wallets',
        steps=[
            WizardStep('BTC', 'Enter the new BTC wallet address:', parse_wallet_address),
            WizardStep('ETH', 'Enter the new ETH wallet address:', parse_wallet_address),
            WizardStep('USDT', 'Enter the new USDT wallet address:', parse_wallet_address),
        ],
        saved=MSG.WALLETS_SAVED,
    ),
}


def start_wizard(engine, admin_id: str, kind: AdminWizard) -> None:
    engine.sessions.pop(admin_id)
    engine.admin_sessions.set(admin_id, AdminDialogue(kind=kind))
    engine.send(admin_id, WIZARDS[kind].steps[0].prompt)


def _advance_wizard(engine, admin_id: str, dialogue: AdminDialogue, text: str) -> None:
    plan = WIZARDS[dialogue.kind]
    step = plan.steps[dialogue.index]

    try:
        value = step.parse(text)
    except ValidationError as e:
        engine.send(admin_id, str(e))
        return

    collected = dict(dialogue.collected)
    collected[step.key] = value

    if dialogue.index + 1 < len(plan.steps):
        engine.admin_sessions.set(
            admin_id, replace(dialogue, index=dialogue.index + 1, collected=collected))
        engine.send(admin_id, plan.steps[dialogue.index + 1].prompt)
        return

    engine.admin_sessions.pop(admin_id)
    try:
        engine.settings.update(admin_id, **{plan.field: collected})
    except StoreError as e:
        logger.error("Settings save failed for %s: %s", dialogue.kind.value, e)
        engine.send(admin_id, UserErrors.ADMIN_SAVE_FAILED)
        return

    engine.send(admin_id, plan.saved, admin_panel_keyboard())


# ===================== REVIEW =====================

def approve_transaction(engine, admin_id: str, tx_id: str) -> str:
    """Start the owner's payment details dialogue. Returns the callback answer."""
    try:
        tx = engine.workflow.approve(tx_id, admin_id)
    except NotFoundError:
        return UserErrors.TX_NOT_FOUND_OR_PROCESSED

    def ask_for_details():
        engine.sessions.set(tx.user_id, Dialogue(
            step=Step.WAITING_PAYMENT_DETAILS, tx_type=tx.type, tx_id=tx.id))
        engine.send(tx.user_id, MSG.APPROVED_ASK_DETAILS)

    engine.run_for_session(tx.user_id, ask_for_details)
    return MSG.APPROVAL_STARTED


def start_rejection(engine, admin_id: str, tx_id: str) -> str:
    try:
        engine.workflow.get_pending(tx_id)
    except NotFoundError:
        return UserErrors.TX_NOT_FOUND_OR_PROCESSED

    engine.admin_sessions.set(admin_id, AdminDialogue(kind=AdminWizard.REJECT_REASON, tx_id=tx_id))
    engine.send(admin_id, MSG.REJECT_REASON_PROMPT)
    return MSG.REJECTION_STARTED


def _finish_rejection(engine, admin_id: str, dialogue: AdminDialogue, text: str) -> None:
    reason = sanitize_text(text).strip()
    if not reason:
        engine.send(admin_id, MSG.REJECT_REASON_PROMPT)
        return

    engine.admin_sessions.pop(admin_id)
    try:
        tx = engine.workflow.reject(dialogue.tx_id, reason, admin_id)
    except NotFoundError:
        engine.send(admin_id, UserErrors.TX_NOT_FOUND_OR_PROCESSED)
        return

    def close_owner_dialogue():
        # Owner may still be waiting to give payment details for this one
        waiting = engine.sessions.get(tx.user_id)
        if waiting is not None and waiting.tx_id == tx.id:
            engine.sessions.pop(tx.user_id)
        engine.send(tx.user_id, fmt.rejected(tx))

    engine.run_for_session(tx.user_id, close_owner_dialogue)
    engine.send(admin_id, fmt.admin_rejected(tx))


# ===================== ENTRY =====================

def handle_admin_input(engine, event, dialogue: AdminDialogue) -> None:
    """Route a message from an admin with an active admin dialogue."""
    admin_id = event.session_id
    text = event.text if event.kind is EventKind.TEXT else None

    if is_cancel(text):
        engine.admin_sessions.pop(admin_id)
        show_main_menu(engine, admin_id, MSG.ADMIN_CANCELLED)
        return

    if dialogue.kind is AdminWizard.REJECT_REASON:
        _finish_rejection(engine, admin_id, dialogue, text)
        return

    if not text:
        engine.send(admin_id, WIZARDS[dialogue.kind].steps[dialogue.index].prompt)
        return

    _advance_wizard(engine, admin_id, dialogue, text)
