"""Async persistence gateway over the document repository"""

import asyncio
import logging
from typing import Any, Callable, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker

from ...database import SessionLocal
from .cursor import encode_cursor
from .repository import DocumentNotFound, DocumentRepository, to_dict

logger = logging.getLogger(__name__)


class QueryResult(BaseModel):
    """One page of documents plus the cursor to continue after it"""

    items: list[dict] = []
    cursor: Optional[str] = None
    has_more: bool = False


class DocumentGateway:
    """
    Document-store client used by the core operations.

    Every call opens its own session and runs in a worker thread, so
    independent calls may be issued concurrently with asyncio.gather.
    There is no transaction spanning several calls.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory
        self.repo = DocumentRepository()

    def _run(self, fn: Callable[[Session], Any]) -> Any:
        db = self.session_factory()
        try:
            return fn(db)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def _call(self, fn: Callable[[Session], Any]) -> Any:
        return await asyncio.to_thread(self._run, fn)

    async def get_by_id(self, collection: str, document_id: str) -> Optional[dict]:
        def op(db: Session):
            document = self.repo.get_by_id(db, collection, document_id)
            return to_dict(document) if document else None

        return await self._call(op)

    async def create(self, collection: str, data: dict) -> str:
        payload = jsonable_encoder(data)

        def op(db: Session):
            return self.repo.create(db, collection, payload).id

        document_id = await self._call(op)
        logger.debug(f"📝 Created {collection}/{document_id}")
        return document_id

    async def update(self, collection: str, document_id: str, partial: dict) -> None:
        payload = jsonable_encoder(partial)

        def op(db: Session):
            self.repo.update(db, collection, document_id, payload)

        await self._call(op)

    async def delete(self, collection: str, document_id: str) -> bool:
        return await self._call(lambda db: self.repo.delete(db, collection, document_id))

    async def query(
        self,
        collection: str,
        filters: Optional[dict],
        page_size: int,
        start_after: Optional[str] = None,
    ) -> QueryResult:
        def op(db: Session):
            rows = self.repo.query_page(db, collection, filters, page_size, start_after)
            page = rows[:page_size]
            cursor = encode_cursor(page[-1].created_at, page[-1].id) if page else None
            return QueryResult(
                items=[to_dict(row) for row in page],
                cursor=cursor,
                has_more=len(rows) > page_size,
            )

        return await self._call(op)

    async def count(self, collection: str, filters: Optional[dict]) -> int:
        return await self._call(lambda db: self.repo.count(db, collection, filters))

    async def find(self, collection: str, filters: Optional[dict]) -> list[dict]:
        def op(db: Session):
            return [to_dict(row) for row in self.repo.find(db, collection, filters)]

        return await self._call(op)


def get_gateway() -> DocumentGateway:
    """Dependency injection for DocumentGateway"""
    return DocumentGateway()


__all__ = ["DocumentGateway", "DocumentNotFound", "QueryResult", "get_gateway"]
