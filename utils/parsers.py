"""
parsers.py - Input Parsing Utilities

Contains:
- is_cancel: Detect the cancel keyword
- is_command_match: Match a slash command against aliases
- parse_number: Parse a finite float from free text
- parse_gift_details: Split "50 USD" into face value and country token
"""

import re
import math
from typing import Optional, Tuple

from config.constants import Commands
from config.errors import UserErrors, ValidationError
from security import NUMBER_PATTERN, sanitize_text, validate_amount

# First decimal number anywhere in the text
GIFT_VALUE_PATTERN = re.compile(r'(\d+(?:\.\d+)?)', re.ASCII)


def is_cancel(text: Optional[str]) -> bool:
    """True if text is the cancel keyword (any case)."""
    return bool(text) and text.strip().lower() == Commands.CANCEL


def is_command_match(text: Optional[str], command_list: list) -> bool:
    """
    Check if text matches any command in the list.

    Args:
        text: The message text
        command_list: List of command aliases (e.g., Commands.START)

    Returns:
        True if text (first word, without @botname suffix) is a listed command
    """
    if not text:
        return False
    first = text.strip().split(maxsplit=1)[0].lower() if text.strip() else ''
    first = first.split('@', 1)[0]
    return first in command_list


def parse_number(text: Optional[str]) -> Optional[float]:
    """Parse text as a finite float, or None."""
    if text is None:
        return None
    text = str(text).strip()
    if not NUMBER_PATTERN.fullmatch(text):
        return None
    value = float(text)
    return value if math.isfinite(value) else None


def parse_gift_details(text: str) -> Tuple[float, str]:
    """
    Parse gift card value and country/currency.

    "50 USD" -> (50.0, "USD"), "25.50 cad" -> (25.5, "CAD")

    Raises:
        ValidationError: no number, value out of range, or no country token.
            The message is ready to show to the user.
    """
    text = (text or '').strip()

    match = GIFT_VALUE_PATTERN.search(text)
    if not match:
        raise ValidationError(UserErrors.GIFT_NO_NUMBER)

    value = float(match.group(1))
    if not validate_amount(value):
        raise ValidationError(UserErrors.GIFT_BAD_VALUE)

    country = sanitize_text(text.replace(match.group(0), '', 1)).strip().upper()
    if not country:
        raise ValidationError(UserErrors.GIFT_NO_COUNTRY)

    return value, country
