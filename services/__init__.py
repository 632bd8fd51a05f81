"""
services/ - Business Logic Services

Contains:
- state_manager.py: Session dialogue state (bounded, idle-expiring)
- memory_store.py: Durable store contract and in-process store
- settings_service.py: Versioned settings cache
- transaction_service.py: Transaction workflow
"""

from .state_manager import SessionStore
from .memory_store import BaseStore, MemoryStore
from .settings_service import SettingsCache, default_settings
from .transaction_service import TransactionWorkflow, HistoryPage
