"""Listing service - wires list views to the engine with a Redis page cache"""

import logging
from typing import Optional

from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict

from ...auth import TenantContext
from ...config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ...notifications import RequestNotifier
from ..documents.gateway import DocumentGateway
from .engine import ListingEngine
from .page_cache import PageCache, RedisPageCache
from .schemas import ListingResponse

logger = logging.getLogger(__name__)


class ListingDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    filters: dict = {}
    page_size: int = DEFAULT_PAGE_SIZE


# Collections that have a paginated list view, with their fixed filters
LISTINGS: dict[str, ListingDefinition] = {
    "products": ListingDefinition(label="products", filters={"active": True}),
    "proposals": ListingDefinition(label="proposals"),
    "sales_records": ListingDefinition(label="sales records"),
    "booking": ListingDefinition(label="bookings"),
    "collectibles": ListingDefinition(label="collectibles", filters={"deleted": False}),
    "invoices": ListingDefinition(label="invoices"),
}


class ListingService:
    """Service layer for paginated list views"""

    def __init__(self, gateway: DocumentGateway, notifier: RequestNotifier):
        self.gateway = gateway
        self.notifier = notifier

    def get_definition(self, collection: str) -> ListingDefinition:
        definition = LISTINGS.get(collection)
        if not definition:
            raise HTTPException(status_code=404, detail=f"Unknown listing: {collection}")
        return definition

    def build_engine(
        self,
        collection: str,
        tenant: TenantContext,
        page_size: Optional[int] = None,
        status: Optional[str] = None,
        page_cache: Optional[PageCache] = None,
    ) -> ListingEngine:
        definition = self.get_definition(collection)
        size = page_size or definition.page_size
        if size < 1 or size > MAX_PAGE_SIZE:
            raise HTTPException(
                status_code=400, detail=f"page_size must be between 1 and {MAX_PAGE_SIZE}"
            )

        filters = dict(definition.filters)
        if status:
            filters["status"] = status

        if page_cache is None:
            page_cache = RedisPageCache(tenant.company_id, collection, filters, size)

        return ListingEngine(
            self.gateway,
            collection,
            tenant,
            size,
            filters=filters,
            page_cache=page_cache,
            notifier=self.notifier,
            label=definition.label,
        )

    async def get_page(
        self,
        collection: str,
        tenant: TenantContext,
        page: int = 1,
        page_size: Optional[int] = None,
        status: Optional[str] = None,
    ) -> ListingResponse:
        """Load one page of a list view"""
        if page < 1:
            raise HTTPException(status_code=400, detail="page must be 1 or greater")

        engine = self.build_engine(collection, tenant, page_size, status)
        snapshot = await engine.load(page)
        return ListingResponse(**snapshot.model_dump(), notifications=self.notifier.notifications)

    def invalidate(self, collection: str, tenant: TenantContext) -> dict:
        """Drop all cached pages of a collection"""
        engine = self.build_engine(collection, tenant)
        engine.invalidate()
        logger.info(f"🧹 Listing cache cleared: {tenant.company_id}/{collection}")
        return {"message": f"{collection} cache cleared"}
