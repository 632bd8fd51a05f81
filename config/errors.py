"""
errors.py - Standardized Errors

User-facing error messages and the exception taxonomy shared by
the conversation engine, the transaction workflow and the stores.
"""


class UserErrors:
    """User-facing error messages."""

    # Input validation
    INVALID_AMOUNT = 'Please enter a valid positive number for the amount (max 1,000,000). Type "cancel" to cancel.'
    INVALID_FILE_PROOF = 'Invalid file. Please upload a valid image (max 10MB) or document. Type "cancel" to cancel.'
    INVALID_FILE_SELL = 'Invalid file. Please upload a valid image (max 10MB) or enter transaction hash. Type "cancel" to cancel.'
    INVALID_FILE_GIFT = 'Invalid file. Please upload a valid image (max 10MB) or enter card code. Type "cancel" to cancel.'
    MISSING_SELL_EVIDENCE = 'Please send your transaction hash as text or upload a screenshot. Type "cancel" to cancel.'
    MISSING_GIFT_EVIDENCE = 'Please upload an image of the gift card or enter the card code as text. Type "cancel" to cancel.'
    GIFT_NO_NUMBER = 'Please enter a valid amount (e.g., "50 USD", "100 EUR", "25.50 CAD"). Type "cancel" to cancel.'
    GIFT_BAD_VALUE = 'Please enter a valid amount (max $1,000,000). Type "cancel" to cancel.'
    GIFT_NO_COUNTRY = 'Please specify the currency/country (e.g., "50 USD", "100 EUR"). Type "cancel" to cancel.'
    EMPTY_PAYMENT_DETAILS = 'Please provide your bank account details or wallet address as text. Type "cancel" to cancel.'

    # Workflow
    WALLET_NOT_CONFIGURED = 'Wallet address not configured. Please contact support.'
    DUPLICATE_PENDING = 'You already have a pending transaction of this type. Please wait for it to be processed or contact support.'
    TX_NOT_FOUND = 'Transaction not found.'
    TX_NOT_FOUND_OR_PROCESSED = 'Transaction not found or already processed.'

    # Access
    UNAUTHORIZED = 'Unauthorized access.'
    UNKNOWN_ACTION = 'Unknown action.'

    # Admin wizards
    ADMIN_INVALID_RATE = 'Please enter a valid positive number.'
    ADMIN_INVALID_GIFT_RATE = 'Please enter a valid rate between 0 and 1 (e.g., 0.85).'
    ADMIN_INVALID_WALLET = 'Please enter a valid wallet address.'
    ADMIN_SAVE_FAILED = 'Error updating settings.'

    # System errors
    STORE_FAILED = 'An error occurred while processing your request. Please try again.'


# ===================== EXCEPTIONS =====================

class BotError(Exception):
    """Base class for errors raised by the bot core."""
    pass


class ValidationError(BotError):
    """Raised when user input fails validation. Always recoverable."""
    pass


class DuplicateSubmissionError(BotError):
    """Raised when a PENDING transaction of the same type already exists."""
    pass


class NotFoundError(BotError):
    """Raised when a transaction reference is stale or unknown."""
    pass


class AlreadyProcessedError(NotFoundError):
    """Raised when a transaction has already reached a terminal state."""
    pass


class StoreError(BotError):
    """Raised when the durable store fails."""
    pass


class UnauthorizedError(BotError):
    """Raised when a non-admin attempts an admin-only action."""
    pass
