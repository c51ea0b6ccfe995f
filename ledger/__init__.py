"""
Ledger Transaction Engine for the spin-to-win game

This module provides:
- A transactional document store with optimistic concurrency
- Atomic deposit and withdrawal approvals with global stats bookkeeping
- Referral bonus cascades applied with a referred user's first deposit
- Tournament entry with an idempotent join guarantee
- Spin settlement against per-tier wallets
- An append-only transaction log
"""

from .errors import (
    LedgerServiceError,
    NotFoundError,
    InvalidStateError,
    InsufficientFundsError,
    AlreadyExistsError,
    ConfigurationError,
    ConflictError,
    TransactionError,
)
from .models import (
    Account,
    AddFundRequest,
    AppSettings,
    EntryType,
    GlobalStats,
    RequestStatus,
    Segment,
    Tournament,
    TournamentStatus,
    TransactionLogEntry,
    WheelTierConfig,
    WithdrawalRequest,
)
from .store import InMemoryStore
from .service import LedgerService

__all__ = [
    "LedgerServiceError",
    "NotFoundError",
    "InvalidStateError",
    "InsufficientFundsError",
    "AlreadyExistsError",
    "ConfigurationError",
    "ConflictError",
    "TransactionError",
    "Account",
    "AddFundRequest",
    "AppSettings",
    "EntryType",
    "GlobalStats",
    "RequestStatus",
    "Segment",
    "Tournament",
    "TournamentStatus",
    "TransactionLogEntry",
    "WheelTierConfig",
    "WithdrawalRequest",
    "InMemoryStore",
    "LedgerService",
]
