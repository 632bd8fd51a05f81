"""
settings_service.py - Shared Settings Cache

Holds the process-wide Settings snapshot (rates and wallets).
Readers get the current immutable snapshot through current();
writers build the next version, persist it, then swap the reference.
A reader therefore sees either the old or the new settings, never a mix.
"""

import threading
import logging
from typing import Dict, Optional

from config.constants import DEFAULT_CRYPTO_RATES, DEFAULT_GIFT_CARD_RATES, DEFAULT_WALLETS
from config.errors import StoreError, ValidationError
from models import Settings
from security import validate_crypto_type, validate_gift_card_type

logger = logging.getLogger(__name__)


def default_settings() -> Settings:
    return Settings(
        crypto_rates=DEFAULT_CRYPTO_RATES,
        gift_card_rates=DEFAULT_GIFT_CARD_RATES,
        wallets=DEFAULT_WALLETS,
    )


class SettingsCache:

    def __init__(self, store, initial: Optional[Settings] = None):
        self._store = store
        self._current = initial or default_settings()
        self._write_lock = threading.Lock()

    def load(self) -> Settings:
        """Load settings from the store, creating defaults on first boot."""
        with self._write_lock:
            stored = self._store.get_settings()
            if stored is None:
                stored = self._store.upsert_settings(default_settings())
                logger.info("Created default settings")
            else:
                logger.info("Settings loaded (version %s)", stored.version)
            self._current = stored
            return stored

    def current(self) -> Settings:
        return self._current

    def crypto_rate(self, crypto_type: str) -> Optional[float]:
        return self._current.crypto_rates.get(crypto_type)

    def gift_card_rate(self, gift_type: str) -> Optional[float]:
        return self._current.gift_card_rates.get(gift_type)

    def wallet(self, crypto_type: str) -> str:
        return self._current.wallets.get(crypto_type, '') or ''

    def update(self, updated_by: str, *, crypto_rates: Optional[Dict[str, float]] = None,
               gift_card_rates: Optional[Dict[str, float]] = None,
               wallets: Optional[Dict[str, str]] = None) -> Settings:
        """
        Persist a new settings version and swap it in.

        Raises:
            ValidationError: a map names an unknown asset
            StoreError: the store rejected the write; the cache is unchanged
        """
        for keys, valid in ((crypto_rates, validate_crypto_type), (wallets, validate_crypto_type),
                            (gift_card_rates, validate_gift_card_type)):
            unknown = [k for k in (keys or {}) if not valid(k)]
            if unknown:
                raise ValidationError(f"unknown asset(s): {', '.join(unknown)}")

        changes = {}
        if crypto_rates is not None:
            changes['crypto_rates'] = crypto_rates
        if gift_card_rates is not None:
            changes['gift_card_rates'] = gift_card_rates
        if wallets is not None:
            changes['wallets'] = wallets

        with self._write_lock:
            candidate = self._current.evolve(str(updated_by), **changes)
            try:
                saved = self._store.upsert_settings(candidate)
            except StoreError:
                raise
            except Exception as e:
                raise StoreError(f"settings write failed: {type(e).__name__}") from e
            self._current = saved
            logger.info("Settings updated to version %s by %s", saved.version, updated_by)
            return saved
