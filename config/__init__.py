"""
config/ - Configuration Module

Contains centralized configuration for:
- Asset enumerations and default settings
- Timeouts, limits and commands
- Admin allowlist
- Error messages and exceptions
"""

from .constants import (
    CRYPTO_TYPES,
    GIFT_CARD_TYPES,
    CRYPTO_NAMES,
    GIFT_CARD_CODES,
    DEFAULT_CRYPTO_RATES,
    DEFAULT_GIFT_CARD_RATES,
    DEFAULT_WALLETS,
    Timeouts,
    Limits,
    Commands,
)

from .allowlist import (
    ADMIN_IDS,
    is_admin,
    parse_admin_ids,
)

from .errors import (
    UserErrors,
    BotError,
    ValidationError,
    DuplicateSubmissionError,
    NotFoundError,
    AlreadyProcessedError,
    StoreError,
    UnauthorizedError,
)
