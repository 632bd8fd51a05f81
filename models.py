"""
models.py - Domain Records and Dialogue State

Data objects passed between the transport, the conversation engine,
the transaction workflow and the stores:
- User, Transaction, Settings: durable records
- Dialogue, AdminDialogue: transient per-session state
- Artifact, InboundEvent: what the transport hands to the engine
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple


class TransactionType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    SELL_GIFT_CARD = "sell_gift_card"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"  # dialogue abandoned, never stored

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class EventKind(Enum):
    TEXT = "text"
    FILE = "file"
    BUTTON = "button"


# ===================== DURABLE RECORDS =====================

@dataclass
class User:
    session_id: str
    username: str = "Unknown"
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class Transaction:
    """One buy / sell / gift card sell request."""
    user_id: str
    type: TransactionType
    id: str = ""
    status: TransactionStatus = TransactionStatus.PENDING

    # Crypto
    crypto_type: Optional[str] = None
    amount: float = 0.0
    rate: float = 0.0
    fiat_amount: float = 0.0

    # Gift card
    gift_type: Optional[str] = None
    card_value: Optional[float] = None
    country: Optional[str] = None

    # Evidence (opaque file ids or sanitized text)
    payment_proof: Optional[str] = None
    tx_hash: Optional[str] = None
    screenshot: Optional[str] = None
    card_image: Optional[str] = None
    card_code: Optional[str] = None

    payment_details: Optional[str] = None
    reject_reason: Optional[str] = None

    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def has_evidence(self) -> bool:
        return any((self.payment_proof, self.tx_hash, self.screenshot,
                    self.card_image, self.card_code))


@dataclass(frozen=True)
class Settings:
    """Immutable settings snapshot. Replace it, never mutate it."""
    crypto_rates: Mapping[str, float]
    gift_card_rates: Mapping[str, float]
    wallets: Mapping[str, str]
    updated_by: Optional[str] = None
    updated_at: datetime = field(default_factory=datetime.now)
    version: int = 1

    def __post_init__(self):
        # Freeze the maps so a shared snapshot can't be edited in place
        for name in ('crypto_rates', 'gift_card_rates', 'wallets'):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def evolve(self, updated_by: str, **changes) -> 'Settings':
        """Return the next version with the given maps replaced."""
        return replace(
            self,
            updated_by=updated_by,
            updated_at=datetime.now(),
            version=self.version + 1,
            **changes,
        )


# ===================== DIALOGUE STATE =====================

class Step(Enum):
    """User dialogue steps."""
    WAITING_AMOUNT = "waiting_amount"
    WAITING_AMOUNT_SELL = "waiting_amount_sell"
    WAITING_PROOF = "waiting_proof"
    WAITING_TX_SELL = "waiting_tx_sell"
    WAITING_GIFT_DETAILS = "waiting_gift_details"
    WAITING_GIFT_UPLOAD = "waiting_gift_upload"
    WAITING_PAYMENT_DETAILS = "waiting_payment_details"


@dataclass
class Dialogue:
    step: Step
    tx_type: Optional[TransactionType] = None
    crypto_type: Optional[str] = None
    gift_type: Optional[str] = None
    amount: Optional[float] = None
    rate: Optional[float] = None
    fiat_amount: Optional[float] = None
    card_value: Optional[float] = None
    country: Optional[str] = None
    tx_id: Optional[str] = None


class AdminWizard(Enum):
    CRYPTO_RATES = "setting_crypto_rates"
    GIFT_RATES = "setting_gift_rates"
    WALLETS = "updating_wallets"
    REJECT_REASON = "waiting_reject_reason"


@dataclass
class AdminDialogue:
    kind: AdminWizard
    index: int = 0
    collected: Dict[str, object] = field(default_factory=dict)
    tx_id: Optional[str] = None


# ===================== TRANSPORT EVENTS =====================

# (label, callback data)
Button = Tuple[str, str]
Keyboard = List[List[Button]]


@dataclass(frozen=True)
class Artifact:
    """Reference to an uploaded file held by the transport."""
    file_id: str
    kind: str  # 'photo' or 'document'
    file_size: Optional[int] = None
    mime_type: Optional[str] = None


@dataclass
class InboundEvent:
    session_id: str
    kind: EventKind
    text: Optional[str] = None
    artifact: Optional[Artifact] = None
    data: Optional[str] = None  # button callback data
    callback_id: Optional[str] = None
    display_name: Optional[str] = None
