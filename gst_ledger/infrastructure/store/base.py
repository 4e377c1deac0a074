# gst_ledger/infrastructure/store/base.py
"""
Document store contract consumed by the ledger core.

A store holds JSON documents grouped into collections and keyed by id.
Single-document writes are atomic; a ``WriteBatch`` groups several writes
into one atomic commit. Subscribers receive a full, ordered snapshot of a
collection after every committed write touching it.
"""

from __future__ import annotations

import inspect
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

logger = logging.getLogger("document_store")

Document = dict[str, Any]
Snapshot = list[tuple[str, Document]]
SnapshotCallback = Callable[[Snapshot], Union[None, Awaitable[None]]]


@dataclass
class BatchOp:
    kind: str  # "set" | "update" | "delete"
    collection: str
    doc_id: str
    data: Document | None = None


def sort_snapshot(rows: Snapshot, order_by: str | None, descending: bool = False) -> Snapshot:
    """Order rows by a document field; documents missing the field sort last."""
    if not order_by:
        return rows
    present = [r for r in rows if r[1].get(order_by) is not None]
    missing = [r for r in rows if r[1].get(order_by) is None]
    present.sort(key=lambda r: r[1][order_by], reverse=descending)
    return present + missing


class WriteBatch(ABC):
    """Collects writes and commits them atomically."""

    def __init__(self) -> None:
        self.ops: list[BatchOp] = []

    def set(self, collection: str, doc_id: str, data: Document) -> "WriteBatch":
        self.ops.append(BatchOp("set", collection, doc_id, dict(data)))
        return self

    def update(self, collection: str, doc_id: str, fields: Document) -> "WriteBatch":
        self.ops.append(BatchOp("update", collection, doc_id, dict(fields)))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self.ops.append(BatchOp("delete", collection, doc_id))
        return self

    def __len__(self) -> int:
        return len(self.ops)

    @abstractmethod
    async def commit(self) -> None:
        """Apply every queued op or none of them."""


@dataclass
class _Subscription:
    collection: str
    callback: SnapshotCallback
    order_by: str | None = None
    descending: bool = False
    active: bool = field(default=True)


class DocumentStore(ABC):
    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    # ---------- reads ----------

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Document | None:
        ...

    @abstractmethod
    async def query(self, collection: str, field_name: str, value: Any) -> Snapshot:
        """Return every document whose ``field_name`` equals ``value``."""

    @abstractmethod
    async def list(
        self,
        collection: str,
        order_by: str | None = None,
        descending: bool = False,
    ) -> Snapshot:
        ...

    # ---------- writes ----------

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        """Create or fully overwrite the document at ``doc_id``."""

    async def add(self, collection: str, data: Document) -> str:
        """Create a document under a store-generated id and return the id."""
        doc_id = self.new_id()
        await self.set(collection, doc_id, data)
        return doc_id

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        """Merge ``fields`` into an existing document; NotFoundError if absent."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document. Deleting a missing id is a no-op."""

    @abstractmethod
    def batch(self) -> WriteBatch:
        ...

    # ---------- subscriptions ----------

    async def subscribe(
        self,
        collection: str,
        callback: SnapshotCallback,
        order_by: str | None = None,
        descending: bool = False,
    ) -> Callable[[], None]:
        """Deliver the current snapshot now and after every write; returns an unsubscribe function."""
        sub = _Subscription(collection, callback, order_by, descending)
        self._subscriptions.append(sub)
        await self._deliver(sub)

        def unsubscribe() -> None:
            sub.active = False
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

        return unsubscribe

    async def _notify(self, *collections: str) -> None:
        touched = set(collections)
        for sub in list(self._subscriptions):
            if sub.active and sub.collection in touched:
                await self._deliver(sub)

    async def _deliver(self, sub: _Subscription) -> None:
        rows = await self.list(sub.collection, sub.order_by, sub.descending)
        try:
            result = sub.callback(rows)
            if inspect.isawaitable(result):
                await result
        except Exception:
            # A broken listener must not fail the write that triggered it
            logger.exception("Snapshot listener on '%s' failed", sub.collection)
