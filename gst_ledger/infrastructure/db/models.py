from sqlalchemy import JSON, Column, DateTime, String, text

from gst_ledger.infrastructure.db.base import Base


class StoredDocument(Base):
    """One JSON document of a logical collection (ledger entries, returns, invoices)."""
    __tablename__ = "documents"
    collection = Column(String(64), primary_key=True)
    id = Column(String(128), primary_key=True)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
    )
