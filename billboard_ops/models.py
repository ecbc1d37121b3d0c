import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Index, String

from .database import Base


def generate_document_id():
    """Generate a unique document ID"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Document(Base):
    """A schemaless record in a named collection (booking, collectibles, invoices, ...)"""

    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=generate_document_id)
    collection = Column(String(100), nullable=False, index=True)
    # Owning tenant; mirrored from data["company_id"] so listings can filter on a column
    company_id = Column(String(255), nullable=True, index=True)
    data = Column(JSON, nullable=False, default=dict)

    # Microsecond precision in Python; listing order and cursors depend on it
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_documents_collection_company_created", "collection", "company_id", "created_at"),
    )
