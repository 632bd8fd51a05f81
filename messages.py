"""
messages.py - Centralized Speech Layer

All bot messages in one place:
- Easy to edit without touching logic
- Static templates in MSG, formatters with data in fmt

Usage:
    from messages import MSG, fmt

    # Get template
    send(session_id, MSG.WELCOME)

    # Format with data
    send(session_id, fmt.buy_summary(dialogue))
"""

from typing import Optional

from config.constants import CRYPTO_NAMES

BOT_NAME = "CardKyng"


# ===================== RAW TEMPLATES =====================

class MSG:
    """Static message templates (no formatting needed)."""

    # === MENUS ===
    WELCOME = f"Welcome to {BOT_NAME} Telegram Bot!"
    WELCOME_BACK = f"Welcome back to {BOT_NAME} Telegram Bot!"
    CHOOSE_BUY = "Choose cryptocurrency to buy:"
    CHOOSE_SELL = "Choose cryptocurrency to sell:"
    CHOOSE_GIFT = "Choose gift card type to sell:"
    ADMIN_PANEL = "Admin Panel - Choose an option:"
    HELP = (
        f"Welcome to {BOT_NAME} Bot!\n\n"
        "Here you can:\n"
        "- Buy and sell cryptocurrencies\n"
        "- Sell gift cards\n\n"
        "Type \"cancel\" at any step to stop.\n"
        "Contact support for more help."
    )
    USE_MENU = "Please choose an option from the menu."

    # === CANCEL ===
    CANCELLED = "Transaction cancelled. Returning to main menu."
    ADMIN_CANCELLED = "Admin action cancelled."

    # === DIALOGUE PROMPTS ===
    GIFT_DETAILS_PROMPT = 'Enter the gift card value and country (e.g., "50 USD" or "100 EUR"). Type "cancel" to cancel.'
    PROOF_PROMPT = 'Please upload your payment proof (photo or document). Type "cancel" to cancel.'

    # === HISTORY ===
    NO_TRANSACTIONS = "No transactions found."

    # === ADMIN ===
    REJECT_REASON_PROMPT = "Please provide the reason for rejection:"
    APPROVAL_STARTED = "Approval initiated. User notified."
    REJECTION_STARTED = "Rejection initiated. Please provide reason."
    APPROVED_ASK_DETAILS = (
        "Your transaction has been approved! Please provide your bank account "
        "details or wallet address for payment."
    )
    CRYPTO_RATES_SAVED = "✅ Crypto rates updated successfully!"
    GIFT_RATES_SAVED = "✅ Gift card rates updated successfully!"
    WALLETS_SAVED = "✅ Wallet addresses updated successfully!"


# ===================== DYNAMIC FORMATTERS =====================

class fmt:
    """Dynamic message formatters with data."""

    @staticmethod
    def num(value: Optional[float]) -> str:
        """Plain number without trailing zeros: 0.5, 50,000, 25.5"""
        if value is None:
            return "-"
        text = f"{float(value):,.8f}".rstrip('0').rstrip('.')
        return text or "0"

    @staticmethod
    def usd(value: Optional[float]) -> str:
        return f"${fmt.num(round(float(value or 0), 2))}"

    @staticmethod
    def asset_name(crypto_type: str) -> str:
        return f"{CRYPTO_NAMES.get(crypto_type, crypto_type)} ({crypto_type})"

    @staticmethod
    def amount_prompt(crypto_type: str, action: str) -> str:
        return f"Enter the amount of {fmt.asset_name(crypto_type)} you want to {action}:"

    @staticmethod
    def buy_summary(crypto_type: str, amount: float, rate: float, fiat_amount: float) -> str:
        return (
            f"Transaction Details:\n"
            f"Cryptocurrency: {crypto_type}\n"
            f"Amount: {fmt.num(amount)} {crypto_type}\n"
            f"Rate: {fmt.usd(rate)} per {crypto_type}\n"
            f"Total to Pay: {fmt.usd(fiat_amount)}\n\n"
            f"{MSG.PROOF_PROMPT}"
        )

    @staticmethod
    def sell_instructions(crypto_type: str, amount: float, wallet: str) -> str:
        return (
            f"Please send {fmt.num(amount)} {crypto_type} to the following wallet address:\n\n"
            f"{wallet}\n\n"
            f"After sending, please submit your transaction hash or upload a screenshot "
            f"of the transaction. Type \"cancel\" to cancel."
        )

    @staticmethod
    def gift_summary(gift_type: str, value: float, country: str, rate: float, payout: float) -> str:
        return (
            f"Gift Card Details:\n"
            f"Type: {gift_type}\n"
            f"Value: {fmt.usd(value)} {country}\n"
            f"Payout Rate: {fmt.num(rate * 100)}%\n"
            f"You will receive: {fmt.usd(payout)}\n\n"
            f"Please upload an image of the gift card or enter the card code. "
            f"Type \"cancel\" to cancel."
        )

    @staticmethod
    def submitted(tx, label: str = "Transaction created") -> str:
        return (
            f"✅ {label} successfully!\n\n"
            f"Transaction ID: {tx.id}\n"
            f"Status: {tx.status.value}\n\n"
            f"Your transaction is being reviewed. You will be notified once it's processed."
        )

    @staticmethod
    def admin_new_sell(tx, user) -> str:
        lines = [
            "🔔 New Sell Transaction Submitted!\n",
            f"User: {user.username} ({user.session_id})",
            f"Type: Sell {tx.crypto_type}",
            f"Amount: {fmt.num(tx.amount)} {tx.crypto_type}",
            f"Transaction ID: {tx.id}",
        ]
        if tx.tx_hash:
            lines.append(f"TX Hash: {tx.tx_hash}")
        if tx.screenshot:
            lines.append(f"Screenshot: {tx.screenshot}")
        return "\n".join(lines)

    @staticmethod
    def admin_new_gift(tx, user) -> str:
        lines = [
            "🔔 New Gift Card Sell Transaction!\n",
            f"User: {user.username} ({user.session_id})",
            f"Type: {tx.gift_type} Gift Card",
            f"Value: {fmt.usd(tx.card_value)} {tx.country}",
            f"Payout: {fmt.usd(tx.fiat_amount)}",
            f"Transaction ID: {tx.id}",
        ]
        if tx.card_code:
            lines.append(f"Card Code: {tx.card_code}")
        if tx.card_image:
            lines.append(f"Card Image: {tx.card_image}")
        return "\n".join(lines)

    @staticmethod
    def completed(tx) -> str:
        return (
            f"✅ Transaction completed!\n\n"
            f"Transaction ID: {tx.id}\n"
            f"Status: {tx.status.value}\n\n"
            f"Your payment is being processed. You will receive it shortly."
        )

    @staticmethod
    def admin_completed(tx) -> str:
        return f"✅ Transaction {tx.id} completed!\nPayment details: {tx.payment_details}"

    @staticmethod
    def rejected(tx) -> str:
        return (
            f"❌ Your transaction has been rejected.\n\n"
            f"Transaction ID: {tx.id}\n"
            f"Reason: {tx.reject_reason}\n\n"
            f"Please contact support for more information."
        )

    @staticmethod
    def admin_rejected(tx) -> str:
        return f"Transaction {tx.id} rejected and user notified."

    @staticmethod
    def history_page(page) -> str:
        """Render a HistoryPage."""
        lines = [f"📊 Your Transaction History (Page {page.page}/{page.total_pages})\n"]
        skip = (page.page - 1) * page.page_size

        for index, tx in enumerate(page.items):
            if tx.type.value == 'buy':
                label = f"Buy {tx.crypto_type}"
                details = f"Amount: {fmt.num(tx.amount)} {tx.crypto_type}\n   Total: {fmt.usd(tx.fiat_amount)}"
            elif tx.type.value == 'sell':
                label = f"Sell {tx.crypto_type}"
                details = f"Amount: {fmt.num(tx.amount)} {tx.crypto_type}"
            else:
                label = f"Sell {tx.gift_type} Gift Card"
                details = f"Value: {fmt.usd(tx.card_value)} {tx.country}\n   Payout: {fmt.usd(tx.fiat_amount)}"

            status = tx.status.value
            icon = "✅" if status == 'COMPLETED' else "❌" if status == 'REJECTED' else "⏳"
            lines.append(f"{skip + index + 1}. {icon} {label}")
            lines.append(f"   {details}")
            lines.append(f"   Date: {tx.created_at.strftime('%Y-%m-%d')}")
            lines.append(f"   ID: {tx.id}\n")

        return "\n".join(lines).rstrip()
