"""
Append-only transaction log.

Entries are written once, inside the transaction that moves the money, and
never updated afterwards.
"""

from decimal import Decimal
from typing import Optional

from .models import EntryType, LedgerHistoryResponse, TransactionLogEntry
from .repository import TRANSACTIONS_COLLECTION, parse, transaction_path
from .store import SERVER_TIMESTAMP, InMemoryStore, Transaction


def append_entry(
    tx: Transaction,
    user_id: str,
    user_email: Optional[str],
    entry_type: EntryType,
    amount: Decimal,
    description: str,
    tier_id: str,
    balance_before: Decimal,
    metadata: Optional[dict] = None,
) -> str:
    """Stage one log entry and return its id.

    The entry is validated before it is staged, so an inconsistent
    before/after pair aborts the surrounding transaction.
    """
    entry_id = tx.new_id()
    sign = 1 if entry_type == EntryType.CREDIT else -1
    entry = TransactionLogEntry(
        id=entry_id,
        user_id=user_id,
        user_email=user_email,
        type=entry_type,
        amount=amount,
        description=description,
        status="completed",
        balance_before=balance_before,
        balance_after=balance_before + sign * amount,
        tier_id=tier_id,
        metadata=metadata or {},
    )
    data = entry.model_dump()
    data["date"] = SERVER_TIMESTAMP
    tx.set(transaction_path(entry_id), data)
    return entry_id


def get_entry(store: InMemoryStore, entry_id: str) -> Optional[TransactionLogEntry]:
    path = transaction_path(entry_id)
    data = store.get(path)
    return parse(TransactionLogEntry, data, path) if data is not None else None


def history(store: InMemoryStore, user_id: str, limit: int = 50, offset: int = 0) -> LedgerHistoryResponse:
    entries = [
        parse(TransactionLogEntry, d, TRANSACTIONS_COLLECTION)
        for d in store.list_collection(TRANSACTIONS_COLLECTION)
        if d.get("user_id") == user_id
    ]
    entries.sort(key=lambda e: e.date, reverse=True)
    return LedgerHistoryResponse(
        user_id=user_id,
        entries=entries[offset:offset + limit],
        total_count=len(entries),
    )
