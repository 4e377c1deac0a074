# gst_ledger/core/errors.py
"""
Error taxonomy shared by the ledger, synchronizer, backfill and return engine.

The tax calculator never raises. Store failures surface as PersistenceError
(or NotFoundError for missing documents) and are propagated unchanged.
"""

from __future__ import annotations


class GSTLedgerError(Exception):
    """Base class for all GST ledger errors."""
    pass


class ValidationError(GSTLedgerError):
    """Malformed input. Callers sanitize before reaching the core, so the
    core itself never raises this."""
    pass


class NotFoundError(GSTLedgerError):
    """A referenced document does not exist in its collection."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"Document '{doc_id}' not found in '{collection}'")
        self.collection = collection
        self.doc_id = doc_id


class PersistenceError(GSTLedgerError):
    """Any store I/O failure (network, permission, driver)."""
    pass


class InvalidReturnTransitionError(GSTLedgerError):
    """Raised when a return filing status transition is not allowed."""
    pass
