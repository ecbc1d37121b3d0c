"""Document repository - Database operations for the document store"""

from typing import Any, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session

from ...models import Document, utcnow
from .cursor import decode_cursor


class DocumentNotFound(LookupError):
    """Raised when a document id does not exist in the collection"""

    def __init__(self, collection: str, document_id: str):
        super().__init__(f"{collection}/{document_id} not found")
        self.collection = collection
        self.document_id = document_id


def to_dict(document: Document) -> dict:
    """Flatten a stored document into the shape callers see"""
    out = dict(document.data or {})
    out["id"] = document.id
    out["created"] = document.created_at.isoformat() if document.created_at else None
    out["updated"] = document.updated_at.isoformat() if document.updated_at else None
    return out


def _field_clause(field: str, value: Any):
    if field == "company_id":
        return Document.company_id == value

    element = Document.data[field]
    if value is None:
        return element.as_string().is_(None)
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return element.as_boolean() == value
    if isinstance(value, int):
        return element.as_integer() == value
    if isinstance(value, float):
        return element.as_float() == value
    return element.as_string() == str(value)


class DocumentRepository:
    """Repository for document database operations"""

    @staticmethod
    def _filtered(db: Session, collection: str, filters: Optional[dict]) -> Query:
        query = db.query(Document).filter(Document.collection == collection)
        for field, value in (filters or {}).items():
            query = query.filter(_field_clause(field, value))
        return query

    @staticmethod
    def get_by_id(db: Session, collection: str, document_id: str) -> Optional[Document]:
        """Get a document by ID"""
        return (
            db.query(Document)
            .filter(Document.collection == collection, Document.id == document_id)
            .first()
        )

    @staticmethod
    def create(db: Session, collection: str, data: dict) -> Document:
        """Create a new document"""
        document = Document(collection=collection, company_id=data.get("company_id"), data=data)
        db.add(document)
        db.commit()
        db.refresh(document)
        return document

    @staticmethod
    def update(db: Session, collection: str, document_id: str, partial: dict) -> Document:
        """Shallow-merge fields into a document"""
        document = DocumentRepository.get_by_id(db, collection, document_id)
        if not document:
            raise DocumentNotFound(collection, document_id)

        # Reassign so the JSON column is flagged dirty
        document.data = {**(document.data or {}), **partial}
        if "company_id" in partial:
            document.company_id = partial["company_id"]
        document.updated_at = utcnow()
        db.commit()
        db.refresh(document)
        return document

    @staticmethod
    def delete(db: Session, collection: str, document_id: str) -> bool:
        """Delete a document; returns False when it was already gone"""
        document = DocumentRepository.get_by_id(db, collection, document_id)
        if not document:
            return False
        db.delete(document)
        db.commit()
        return True

    @staticmethod
    def query_page(
        db: Session,
        collection: str,
        filters: Optional[dict],
        page_size: int,
        start_after: Optional[str] = None,
    ) -> list[Document]:
        """
        Fetch up to page_size + 1 documents, newest first, after the cursor.
        The extra row tells the caller whether another page exists.
        """
        query = DocumentRepository._filtered(db, collection, filters)

        if start_after:
            position = decode_cursor(start_after)
            query = query.filter(
                or_(
                    Document.created_at < position.created_at,
                    and_(
                        Document.created_at == position.created_at,
                        Document.id < position.document_id,
                    ),
                )
            )

        return (
            query.order_by(Document.created_at.desc(), Document.id.desc())
            .limit(page_size + 1)
            .all()
        )

    @staticmethod
    def count(db: Session, collection: str, filters: Optional[dict]) -> int:
        """Count documents matching the filters"""
        return DocumentRepository._filtered(db, collection, filters).count()

    @staticmethod
    def find(db: Session, collection: str, filters: Optional[dict]) -> list[Document]:
        """Get every matching document, newest first"""
        return (
            DocumentRepository._filtered(db, collection, filters)
            .order_by(Document.created_at.desc(), Document.id.desc())
            .all()
        )
