from .base import DocumentStore, Snapshot, WriteBatch
from .memory import InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "WriteBatch",
    "Snapshot",
    "InMemoryDocumentStore",
]
