"""
handlers/menu_handler.py - Menu Buttons and Callback Dispatch

Every button carries callback data that decodes to exactly one MenuAction
(plus an optional argument such as the asset or the transaction id).
BUTTON_HANDLERS maps each action to its handler; a handler returns the
text used to answer the callback query (or None).
"""

import logging
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from config.constants import CRYPTO_TYPES, GIFT_CARD_CODES
from config.errors import UnauthorizedError, UserErrors
from messages import MSG, fmt
from models import AdminWizard, Dialogue, Keyboard, Step, TransactionType

logger = logging.getLogger(__name__)


class MenuAction(Enum):
    MAIN_MENU = "main_menu"
    BUY_CRYPTO = "buy_crypto"
    SELL_CRYPTO = "sell_crypto"
    SELL_GIFT_CARDS = "sell_gift_cards"
    TRANSACTION_HISTORY = "transaction_history"
    HELP = "help"
    ADMIN_PANEL = "admin_panel"
    SET_CRYPTO_RATES = "set_crypto_rates"
    SET_GIFT_CARD_RATES = "set_gift_card_rates"
    UPDATE_WALLETS = "update_wallets"
    # Actions with an argument
    BUY_ASSET = "buy"
    SELL_ASSET = "sell"
    SELL_GIFT = "sell_gift"
    HISTORY_PAGE = "history_page"
    APPROVE = "approve"
    REJECT = "reject"


ADMIN_ACTIONS = frozenset({
    MenuAction.ADMIN_PANEL,
    MenuAction.SET_CRYPTO_RATES,
    MenuAction.SET_GIFT_CARD_RATES,
    MenuAction.UPDATE_WALLETS,
    MenuAction.APPROVE,
    MenuAction.REJECT,
})

_PLAIN_ACTIONS = {
    action.value: action for action in (
        MenuAction.MAIN_MENU, MenuAction.BUY_CRYPTO, MenuAction.SELL_CRYPTO,
        MenuAction.SELL_GIFT_CARDS, MenuAction.TRANSACTION_HISTORY, MenuAction.HELP,
        MenuAction.ADMIN_PANEL, MenuAction.SET_CRYPTO_RATES,
        MenuAction.SET_GIFT_CARD_RATES, MenuAction.UPDATE_WALLETS,
    )
}

# buy_btc, sell_eth, sell_amazon, sell_google ...
_ASSET_ACTIONS: Dict[str, Tuple[MenuAction, str]] = {}
for _crypto in CRYPTO_TYPES:
    _ASSET_ACTIONS[f"buy_{_crypto.lower()}"] = (MenuAction.BUY_ASSET, _crypto)
    _ASSET_ACTIONS[f"sell_{_crypto.lower()}"] = (MenuAction.SELL_ASSET, _crypto)
for _code, _brand in GIFT_CARD_CODES.items():
    _ASSET_ACTIONS[f"sell_{_code}"] = (MenuAction.SELL_GIFT, _brand)

_PREFIX_ACTIONS = (
    ("history_page_", MenuAction.HISTORY_PAGE),
    ("approve_", MenuAction.APPROVE),
    ("reject_", MenuAction.REJECT),
)


# ===================== CALLBACK DATA CODEC =====================

def parse_callback_data(data: Optional[str]) -> Optional[Tuple[MenuAction, Optional[str]]]:
    """Decode callback data into (action, argument), or None if unknown."""
    if not data:
        return None

    if data in _PLAIN_ACTIONS:
        return _PLAIN_ACTIONS[data], None

    if data in _ASSET_ACTIONS:
        return _ASSET_ACTIONS[data]

    for prefix, action in _PREFIX_ACTIONS:
        if data.startswith(prefix):
            arg = data[len(prefix):]
            if not arg:
                return None
            if action is MenuAction.HISTORY_PAGE and not (arg.isdigit() and int(arg) > 0):
                return None
            return action, arg

    return None


def callback_data(action: MenuAction, arg: Optional[str] = None) -> str:
    """Encode an action back to callback data."""
    if action is MenuAction.BUY_ASSET:
        return f"buy_{arg.lower()}"
    if action is MenuAction.SELL_ASSET:
        return f"sell_{arg.lower()}"
    if action is MenuAction.SELL_GIFT:
        code = next(c for c, brand in GIFT_CARD_CODES.items() if brand == arg)
        return f"sell_{code}"
    if action in (MenuAction.HISTORY_PAGE, MenuAction.APPROVE, MenuAction.REJECT):
        return f"{action.value}_{arg}"
    return action.value


# ===================== KEYBOARDS =====================

BACK_ROW = [("Back to Main Menu", MenuAction.MAIN_MENU.value)]


def main_menu_keyboard(is_admin: bool = False) -> Keyboard:
    keyboard = [
        [("Buy Crypto", MenuAction.BUY_CRYPTO.value)],
        [("Sell Crypto", MenuAction.SELL_CRYPTO.value)],
        [("Sell Gift Cards", MenuAction.SELL_GIFT_CARDS.value)],
        [("Transaction History", MenuAction.TRANSACTION_HISTORY.value)],
        [("Help", MenuAction.HELP.value)],
    ]
    if is_admin:
        keyboard.insert(4, [("Admin Panel", MenuAction.ADMIN_PANEL.value)])
    return keyboard


def crypto_keyboard(action: MenuAction) -> Keyboard:
    rows = [[(fmt.asset_name(c), callback_data(action, c))] for c in CRYPTO_TYPES]
    return rows + [BACK_ROW]


def gift_card_keyboard() -> Keyboard:
    rows = [[(f"{brand} Gift Card", callback_data(MenuAction.SELL_GIFT, brand))]
            for brand in GIFT_CARD_CODES.values()]
    return rows + [BACK_ROW]


def admin_panel_keyboard() -> Keyboard:
    return [
        [("Set Crypto Rates", MenuAction.SET_CRYPTO_RATES.value)],
        [("Set Gift Card Rates", MenuAction.SET_GIFT_CARD_RATES.value)],
        [("Update Wallet Addresses", MenuAction.UPDATE_WALLETS.value)],
        BACK_ROW,
    ]


def review_keyboard(tx_id: str) -> Keyboard:
    return [
        [("✅ Approve", callback_data(MenuAction.APPROVE, tx_id))],
        [("❌ Reject", callback_data(MenuAction.REJECT, tx_id))],
    ]


def history_keyboard(page) -> Keyboard:
    keyboard = []
    nav = []
    if page.has_previous:
        nav.append(("⬅️ Previous", callback_data(MenuAction.HISTORY_PAGE, str(page.page - 1))))
    if page.has_next:
        nav.append(("Next ➡️", callback_data(MenuAction.HISTORY_PAGE, str(page.page + 1))))
    if nav:
        keyboard.append(nav)
    keyboard.append(BACK_ROW)
    return keyboard


# ===================== SCREENS =====================

def show_main_menu(engine, session_id: str, text: str = MSG.WELCOME_BACK) -> None:
    engine.send(session_id, text, main_menu_keyboard(engine.is_admin(session_id)))


def show_history(engine, session_id: str, page_number: int = 1) -> None:
    page = engine.workflow.list_page(session_id, page_number)
    if not page.items:
        engine.send(session_id, MSG.NO_TRANSACTIONS, [BACK_ROW])
        return
    engine.send(session_id, fmt.history_page(page), history_keyboard(page))


# ===================== HANDLERS =====================

def _main_menu(engine, event, arg):
    show_main_menu(engine, event.session_id)


def _buy_crypto(engine, event, arg):
    engine.send(event.session_id, MSG.CHOOSE_BUY, crypto_keyboard(MenuAction.BUY_ASSET))


def _sell_crypto(engine, event, arg):
    engine.send(event.session_id, MSG.CHOOSE_SELL, crypto_keyboard(MenuAction.SELL_ASSET))


def _sell_gift_cards(engine, event, arg):
    engine.send(event.session_id, MSG.CHOOSE_GIFT, gift_card_keyboard())


def _history(engine, event, arg):
    show_history(engine, event.session_id, 1)


def _history_page(engine, event, arg):
    show_history(engine, event.session_id, int(arg))


def _help(engine, event, arg):
    engine.send(event.session_id, MSG.HELP, [BACK_ROW])


def _admin_panel(engine, event, arg):
    engine.send(event.session_id, MSG.ADMIN_PANEL, admin_panel_keyboard())


def _start_dialogue(engine, session_id: str, dialogue: Dialogue) -> None:
    """Replace whatever dialogue the session has, admin wizards included."""
    engine.admin_sessions.pop(session_id)
    engine.sessions.set(session_id, dialogue)


def _buy_asset(engine, event, arg):
    _start_dialogue(engine, event.session_id, Dialogue(
        step=Step.WAITING_AMOUNT, tx_type=TransactionType.BUY, crypto_type=arg))
    engine.send(event.session_id, fmt.amount_prompt(arg, "buy"))


def _sell_asset(engine, event, arg):
    _start_dialogue(engine, event.session_id, Dialogue(
        step=Step.WAITING_AMOUNT_SELL, tx_type=TransactionType.SELL, crypto_type=arg))
    engine.send(event.session_id, fmt.amount_prompt(arg, "sell"))


def _sell_gift(engine, event, arg):
    _start_dialogue(engine, event.session_id, Dialogue(
        step=Step.WAITING_GIFT_DETAILS, tx_type=TransactionType.SELL_GIFT_CARD, gift_type=arg))
    engine.send(event.session_id, MSG.GIFT_DETAILS_PROMPT)


def _admin_wizard(kind: AdminWizard):
    def handler(engine, event, arg):
        from handlers.admin_handler import start_wizard
        start_wizard(engine, event.session_id, kind)
    return handler


def _approve(engine, event, arg):
    from handlers.admin_handler import approve_transaction
    return approve_transaction(engine, event.session_id, arg)


def _reject(engine, event, arg):
    from handlers.admin_handler import start_rejection
    return start_rejection(engine, event.session_id, arg)


BUTTON_HANDLERS: Dict[MenuAction, Callable] = {
    MenuAction.MAIN_MENU: _main_menu,
    MenuAction.BUY_CRYPTO: _buy_crypto,
    MenuAction.SELL_CRYPTO: _sell_crypto,
    MenuAction.SELL_GIFT_CARDS: _sell_gift_cards,
    MenuAction.TRANSACTION_HISTORY: _history,
    MenuAction.HELP: _help,
    MenuAction.ADMIN_PANEL: _admin_panel,
    MenuAction.SET_CRYPTO_RATES: _admin_wizard(AdminWizard.CRYPTO_RATES),
    MenuAction.SET_GIFT_CARD_RATES: _admin_wizard(AdminWizard.GIFT_RATES),
    MenuAction.UPDATE_WALLETS: _admin_wizard(AdminWizard.WALLETS),
    MenuAction.BUY_ASSET: _buy_asset,
    MenuAction.SELL_ASSET: _sell_asset,
    MenuAction.SELL_GIFT: _sell_gift,
    MenuAction.HISTORY_PAGE: _history_page,
    MenuAction.APPROVE: _approve,
    MenuAction.REJECT: _reject,
}


def require_admin(engine, session_id: str, action: MenuAction) -> None:
    if not engine.is_admin(session_id):
        raise UnauthorizedError(f"Unauthorized {action.value} attempt by {session_id}")


def handle_button(engine, event) -> Optional[str]:
    """
    Dispatch a button press.

    Returns:
        Text for the callback answer, or None for a silent answer
    """
    parsed = parse_callback_data(event.data)
    if parsed is None:
        logger.info("Unknown callback data from %s", event.session_id)
        return UserErrors.UNKNOWN_ACTION

    action, arg = parsed
    try:
        if action in ADMIN_ACTIONS:
            require_admin(engine, event.session_id, action)
    except UnauthorizedError as e:
        logger.warning("%s", e)
        return UserErrors.UNAUTHORIZED

    return BUTTON_HANDLERS[action](engine, event, arg)
