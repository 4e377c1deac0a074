from .document_repository import SqlDocumentStore

__all__ = [
    "SqlDocumentStore",
]
