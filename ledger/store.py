"""
In-memory transactional document store.

Documents live under slash-separated paths ("users/u1",
"tournaments/t1/participants/u1"). Every document carries a version; a
transaction remembers the version of each document it reads and its commit
fails with ConflictError if any of them moved in the meantime.
"""

import copy
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, TypeVar
from uuid import uuid4

from .errors import ConflictError, NotFoundError, TransactionError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Increment:
    delta: Any


class ArrayUnion:
    def __init__(self, *values):
        self.values = tuple(values)

    def __repr__(self) -> str:
        return f"ArrayUnion{self.values!r}"


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def doc_path(*parts: str) -> str:
    return "/".join(str(p) for p in parts)


def _resolve(current: Any, value: Any, now: datetime) -> Any:
    if isinstance(value, Increment):
        return (current or 0) + value.delta
    if isinstance(value, ArrayUnion):
        merged = list(current or [])
        for item in value.values:
            if item not in merged:
                merged.append(item)
        return merged
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {k: _resolve(None, v, now) for k, v in value.items()}
    return copy.deepcopy(value)


def _apply_fields(doc: dict, fields: dict, now: datetime) -> None:
    for key, value in fields.items():
        target = doc
        *parents, leaf = key.split(".")
        for part in parents:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        target[leaf] = _resolve(target.get(leaf), value, now)


@dataclass
class _Write:
    kind: str
    path: str
    data: dict


class Transaction:
    """One atomic unit of reads followed by staged writes."""

    def __init__(self, store: "InMemoryStore"):
        self._store = store
        self._reads: dict[str, int] = {}
        self._writes: list[_Write] = []
        self._done = False

    def get(self, path: str) -> Optional[dict]:
        self._check_open()
        if self._writes:
            raise TransactionError("All reads must happen before the first write in a transaction")
        with self._store._lock:
            version = self._store._versions.get(path, 0)
            doc = self._store._docs.get(path)
            snapshot = copy.deepcopy(doc) if doc is not None else None
        if path in self._reads and self._reads[path] != version:
            raise ConflictError(f"Document {path} changed during the transaction")
        self._reads[path] = version
        return snapshot

    def set(self, path: str, data: dict) -> None:
        self._check_open()
        self._writes.append(_Write("set", path, dict(data)))

    def update(self, path: str, fields: dict) -> None:
        self._check_open()
        self._writes.append(_Write("update", path, dict(fields)))

    def new_id(self) -> str:
        return self._store.new_id()

    def commit(self) -> None:
        self._check_open()
        self._done = True
        store = self._store
        with store._lock:
            for path, version in self._reads.items():
                if store._versions.get(path, 0) != version:
                    logger.warning("Commit rejected, %s moved from version %s", path, version)
                    raise ConflictError(f"Document {path} was modified by a concurrent transaction")

            now = store._next_timestamp()
            staged: dict[str, dict] = {}
            for write in self._writes:
                if write.path in staged:
                    doc = staged[write.path]
                else:
                    existing = store._docs.get(write.path)
                    doc = copy.deepcopy(existing) if existing is not None else None

                if write.kind == "set":
                    doc = {}
                elif doc is None:
                    raise NotFoundError(f"No document to update at {write.path}")
                _apply_fields(doc, write.data, now)
                staged[write.path] = doc

            for path, doc in staged.items():
                store._docs[path] = doc
                store._versions[path] = store._versions.get(path, 0) + 1

    def _check_open(self) -> None:
        if self._done:
            raise TransactionError("Transaction already committed")


class InMemoryStore:
    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._docs: dict[str, dict] = {}
        self._versions: dict[str, int] = {}
        self._lock = threading.RLock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_timestamp: Optional[datetime] = None

    def new_id(self) -> str:
        return uuid4().hex[:20]

    def now(self) -> datetime:
        with self._lock:
            current = self._clock()
            if self._last_timestamp is not None and current <= self._last_timestamp:
                return self._last_timestamp
            return current

    def _next_timestamp(self) -> datetime:
        current = self._clock()
        if self._last_timestamp is not None and current <= self._last_timestamp:
            current = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = current
        return current

    def transaction(self) -> Transaction:
        return Transaction(self)

    def run_transaction(self, body: Callable[[Transaction], T]) -> T:
        """Run ``body`` in a fresh transaction and commit it.

        The body is called once. A ConflictError from the commit propagates so
        the caller can decide whether to run the whole operation again.
        """
        tx = Transaction(self)
        result = body(tx)
        tx.commit()
        return result

    def get(self, path: str) -> Optional[dict]:
        with self._lock:
            doc = self._docs.get(path)
            return copy.deepcopy(doc) if doc is not None else None

    def add(self, collection: str, data: dict) -> str:
        doc_id = self.new_id()
        self.run_transaction(lambda tx: tx.set(doc_path(collection, doc_id), {"id": doc_id, **data}))
        return doc_id

    def list_collection(self, collection: str) -> list[dict]:
        prefix = collection.rstrip("/") + "/"
        with self._lock:
            return [
                copy.deepcopy(doc)
                for path, doc in self._docs.items()
                if path.startswith(prefix) and "/" not in path[len(prefix):]
            ]
