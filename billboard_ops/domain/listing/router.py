"""Listing router - FastAPI endpoints for paginated list views"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import TenantContext, get_tenant_context
from ...notifications import RequestNotifier, get_request_notifier
from ..documents.gateway import DocumentGateway, get_gateway
from .schemas import ListingResponse
from .service import ListingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/listings", tags=["Listings"])


def get_listing_service(
    gateway: DocumentGateway = Depends(get_gateway),
    notifier: RequestNotifier = Depends(get_request_notifier),
) -> ListingService:
    """Dependency injection for ListingService"""
    return ListingService(gateway, notifier)


@router.get("/{collection}", response_model=ListingResponse)
async def get_listing_page(
    collection: str,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    status: Optional[str] = Query(None),
    tenant: TenantContext = Depends(get_tenant_context),
    service: ListingService = Depends(get_listing_service),
):
    """Get one page of a collection for the current company"""
    return await service.get_page(collection, tenant, page, page_size, status)


@router.delete("/{collection}/cache")
async def invalidate_listing(
    collection: str,
    tenant: TenantContext = Depends(get_tenant_context),
    service: ListingService = Depends(get_listing_service),
):
    """Force the next page request to hit the document store"""
    return service.invalidate(collection, tenant)


__all__ = ["router", "get_listing_page", "invalidate_listing"]
