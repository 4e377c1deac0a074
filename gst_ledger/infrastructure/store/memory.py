# gst_ledger/infrastructure/store/memory.py
"""Process-local document store. Backs tests and single-process local runs."""

from __future__ import annotations

import copy
from typing import Any

from gst_ledger.core.errors import NotFoundError
from gst_ledger.infrastructure.store.base import (
    BatchOp,
    Document,
    DocumentStore,
    Snapshot,
    WriteBatch,
    sort_snapshot,
)


def _apply(data: dict[str, dict[str, Document]], op: BatchOp) -> None:
    docs = data.setdefault(op.collection, {})
    if op.kind == "set":
        docs[op.doc_id] = copy.deepcopy(op.data)
    elif op.kind == "update":
        if op.doc_id not in docs:
            raise NotFoundError(op.collection, op.doc_id)
        docs[op.doc_id] = {**docs[op.doc_id], **copy.deepcopy(op.data)}
    elif op.kind == "delete":
        docs.pop(op.doc_id, None)
    else:
        raise ValueError(f"Unknown batch op {op.kind!r}")


class InMemoryWriteBatch(WriteBatch):
    def __init__(self, store: "InMemoryDocumentStore") -> None:
        super().__init__()
        self._store = store

    async def commit(self) -> None:
        await self._store._commit(self.ops)


class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        super().__init__()
        self._data: dict[str, dict[str, Document]] = {}

    async def get(self, collection: str, doc_id: str) -> Document | None:
        doc = self._data.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def query(self, collection: str, field_name: str, value: Any) -> Snapshot:
        return [
            (doc_id, copy.deepcopy(doc))
            for doc_id, doc in self._data.get(collection, {}).items()
            if doc.get(field_name) == value
        ]

    async def list(
        self,
        collection: str,
        order_by: str | None = None,
        descending: bool = False,
    ) -> Snapshot:
        rows = [
            (doc_id, copy.deepcopy(doc))
            for doc_id, doc in self._data.get(collection, {}).items()
        ]
        return sort_snapshot(rows, order_by, descending)

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        await self._commit([BatchOp("set", collection, doc_id, dict(data))])

    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        await self._commit([BatchOp("update", collection, doc_id, dict(fields))])

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._commit([BatchOp("delete", collection, doc_id)])

    def batch(self) -> WriteBatch:
        return InMemoryWriteBatch(self)

    async def _commit(self, ops: list[BatchOp]) -> None:
        if not ops:
            return
        # Stage against a copy so a failing op leaves the store untouched
        staged = {name: dict(docs) for name, docs in self._data.items()}
        for op in ops:
            _apply(staged, op)
        self._data = staged
        await self._notify(*{op.collection for op in ops})
