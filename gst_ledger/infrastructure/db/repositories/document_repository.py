# gst_ledger/infrastructure/db/repositories/document_repository.py

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gst_ledger.core.errors import NotFoundError, PersistenceError
from gst_ledger.infrastructure.db.models import StoredDocument
from gst_ledger.infrastructure.store.base import (
    BatchOp,
    Document,
    DocumentStore,
    Snapshot,
    WriteBatch,
    sort_snapshot,
)

logger = logging.getLogger("document_repository")


class SqlWriteBatch(WriteBatch):
    def __init__(self, store: "SqlDocumentStore") -> None:
        super().__init__()
        self._store = store

    async def commit(self) -> None:
        await self._store._commit(self.ops)


class SqlDocumentStore(DocumentStore):
    """DocumentStore over the ``documents`` table; one transaction per write or batch."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__()
        self._session_factory = session_factory

    # ---------- small helpers ----------

    @staticmethod
    async def _fetch(
        db: AsyncSession, collection: str, doc_id: str
    ) -> StoredDocument | None:
        stmt = select(StoredDocument).where(
            and_(
                StoredDocument.collection == collection,
                StoredDocument.id == doc_id,
            )
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @classmethod
    async def _apply(cls, db: AsyncSession, op: BatchOp) -> None:
        if op.kind == "delete":
            await db.execute(
                delete(StoredDocument).where(
                    and_(
                        StoredDocument.collection == op.collection,
                        StoredDocument.id == op.doc_id,
                    )
                )
            )
            return

        row = await cls._fetch(db, op.collection, op.doc_id)
        if op.kind == "set":
            if row is None:
                db.add(StoredDocument(collection=op.collection, id=op.doc_id, data=dict(op.data)))
            else:
                row.data = dict(op.data)
        elif op.kind == "update":
            if row is None:
                raise NotFoundError(op.collection, op.doc_id)
            # Reassign so the JSON column is flagged dirty
            row.data = {**row.data, **op.data}
        else:
            raise ValueError(f"Unknown batch op {op.kind!r}")

    # ---------- reads ----------

    async def get(self, collection: str, doc_id: str) -> Document | None:
        try:
            async with self._session_factory() as db:
                row = await self._fetch(db, collection, doc_id)
                return dict(row.data) if row else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"get {collection}/{doc_id} failed: {exc}") from exc

    async def query(self, collection: str, field_name: str, value: Any) -> Snapshot:
        stmt = select(StoredDocument).where(StoredDocument.collection == collection)
        if isinstance(value, str):
            stmt = stmt.where(StoredDocument.data[field_name].as_string() == value)
        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                rows = [(r.id, dict(r.data)) for r in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"query {collection}.{field_name} failed: {exc}") from exc
        # Non-string values are compared after loading
        return [(doc_id, doc) for doc_id, doc in rows if doc.get(field_name) == value]

    async def list(
        self,
        collection: str,
        order_by: str | None = None,
        descending: bool = False,
    ) -> Snapshot:
        stmt = (
            select(StoredDocument)
            .where(StoredDocument.collection == collection)
            .order_by(StoredDocument.created_at)
        )
        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                rows = [(r.id, dict(r.data)) for r in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"list {collection} failed: {exc}") from exc
        return sort_snapshot(rows, order_by, descending)

    # ---------- writes ----------

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        await self._commit([BatchOp("set", collection, doc_id, dict(data))])

    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        await self._commit([BatchOp("update", collection, doc_id, dict(fields))])

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._commit([BatchOp("delete", collection, doc_id)])

    def batch(self) -> WriteBatch:
        return SqlWriteBatch(self)

    async def _commit(self, ops: list[BatchOp]) -> None:
        if not ops:
            return
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    for op in ops:
                        await self._apply(db, op)
        except SQLAlchemyError as exc:
            logger.error("Commit of %d op(s) failed: %s", len(ops), exc)
            raise PersistenceError(f"commit failed: {exc}") from exc
        await self._notify(*{op.collection for op in ops})
