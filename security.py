"""
security.py - Security Module for the Exchange Bot

Provides:
- Input validation (amounts, asset enumerations, uploads)
- Text sanitization (markup stripping, length limit)
- Rate limiting per session (fixed window)
- Secure logging (masks sensitive data)

CRITICAL: Every inbound event passes the rate limiter before anything else.
"""

import re
import math
import time
import logging
import threading
from typing import Callable, Dict, Optional, Union

from config.constants import CRYPTO_TYPES, GIFT_CARD_TYPES, Limits, Timeouts

logger = logging.getLogger("cardkyng")


# ===================== SENSITIVE DATA PATTERNS =====================

SENSITIVE_PATTERNS = [
    (r"bot\d{6,}:[a-zA-Z0-9_-]{30,}", "bot[TELEGRAM_TOKEN_HIDDEN]"),
    (r"\d{6,}:[a-zA-Z0-9_-]{30,}", "[TELEGRAM_TOKEN_HIDDEN]"),
    (r"\"private_key\":\s*\"[^\"]+\"", "\"private_key\": \"[HIDDEN]\""),
    (r"\"refresh_token\":\s*\"[^\"]+\"", "\"refresh_token\": \"[HIDDEN]\""),
    (r"\"access_token\":\s*\"[^\"]+\"", "\"access_token\": \"[HIDDEN]\""),
]

MARKUP_PATTERN = re.compile(r"<[^>]*>")

# Plain decimal literal, ASCII digits only (no "1_000", no "inf")
NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


# ===================== VALIDATION =====================

def validate_amount(value: Union[str, float, int, None]) -> bool:
    """Check that value is a finite number in (0, MAX_AMOUNT]."""
    if value is None or isinstance(value, bool):
        return False
    text = str(value).strip()
    if not NUMBER_PATTERN.fullmatch(text):
        return False
    num = float(text)
    return math.isfinite(num) and 0 < num <= Limits.MAX_AMOUNT


def validate_crypto_type(value: Optional[str]) -> bool:
    return value in CRYPTO_TYPES


def validate_gift_card_type(value: Optional[str]) -> bool:
    return value in GIFT_CARD_TYPES


def sanitize_text(text: Optional[str]) -> str:
    """Strip <...> markup and limit length."""
    if not text:
        return ""
    return MARKUP_PATTERN.sub("", text)[:Limits.MAX_TEXT_LENGTH]


def validate_upload(artifact) -> bool:
    """
    Validate an uploaded file reference.

    Photos are accepted up to the size ceiling. Documents must also carry an
    allowed MIME type when the transport reports one.
    """
    if artifact is None or not artifact.file_id:
        return False

    if artifact.file_size is not None and artifact.file_size > Limits.MAX_UPLOAD_BYTES:
        return False

    if artifact.kind == 'photo':
        return True

    if artifact.kind == 'document':
        if artifact.mime_type and artifact.mime_type not in Limits.ALLOWED_MIME_TYPES:
            return False
        return True

    return False


# ===================== RATE LIMITING =====================

class RateLimiter:
    """
    Fixed-window counter per session.

    Each session gets `limit` events per window; the window restarts on the
    first event after it expires. Rejected events must be dropped silently.
    """

    def __init__(self, limit: int = Limits.RATE_LIMIT_EVENTS,
                 window_seconds: float = Timeouts.RATE_LIMIT_WINDOW,
                 max_keys: int = Limits.RATE_LIMIT_MAX_KEYS,
                 clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        # {session_id: [count, reset_at]}
        self._counters: Dict[str, list] = {}
        self._lock = threading.Lock()

    def admit(self, session_id: str) -> bool:
        now = self._clock()
        key = str(session_id)

        with self._lock:
            counter = self._counters.get(key)
            if counter is None:
                counter = [0, now + self.window_seconds]
                self._counters[key] = counter

            if now > counter[1]:
                counter[0] = 0
                counter[1] = now + self.window_seconds

            if counter[0] >= self.limit:
                return False

            counter[0] += 1

            if len(self._counters) > self.max_keys:
                self._prune(now)

        return True

    def _prune(self, now: float) -> None:
        """Drop sessions whose window has already expired."""
        expired = [k for k, (_, reset_at) in self._counters.items() if now > reset_at]
        for k in expired:
            del self._counters[k]

    def __len__(self) -> int:
        return len(self._counters)


# ===================== SECURE LOGGING =====================

def mask_sensitive_data(text: str) -> str:
    """
    Mask sensitive data in text for safe logging.

    Args:
        text: Text that may contain sensitive data

    Returns:
        Text with sensitive data masked
    """
    if not text:
        return ""

    result = str(text)

    for pattern, replacement in SENSITIVE_PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)

    return result


def secure_log(level: str, message: str, **kwargs) -> None:
    """
    Log message with sensitive data masked.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        message: Log message
        **kwargs: Additional context
    """
    try:
        masked_message = mask_sensitive_data(message)

        masked_kwargs = {
            k: mask_sensitive_data(str(v))
            for k, v in kwargs.items()
        }

        context = ' '.join(f"{k}={v}" for k, v in masked_kwargs.items())
        log_line = f"{masked_message} {context}".strip()

        logger.log(getattr(logging, level.upper(), logging.INFO), log_line)
    except Exception:
        # Logging must never break request handling
        pass
