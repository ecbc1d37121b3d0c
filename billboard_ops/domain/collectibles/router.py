"""Collectibles router - FastAPI endpoints for treasury collectibles"""

import logging

from fastapi import APIRouter, Depends

from ...auth import TenantContext, get_tenant_context
from ...notifications import RequestNotifier, get_request_notifier
from ..documents.gateway import DocumentGateway, get_gateway
from .schemas import (
    CollectibleResponse,
    CollectiblesCreated,
    CreateCollectiblesRequest,
    SchedulePreviewRequest,
    SchedulePreviewResponse,
    StatusUpdateRequest,
)
from .service import CollectibleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/treasury/collectibles", tags=["Collectibles"])


def get_collectible_service(
    gateway: DocumentGateway = Depends(get_gateway),
    notifier: RequestNotifier = Depends(get_request_notifier),
) -> CollectibleService:
    """Dependency injection for CollectibleService"""
    return CollectibleService(gateway, notifier)


# ============================================================================
# SCHEDULE GENERATION
# ============================================================================


@router.post("/preview/{booking_id}", response_model=SchedulePreviewResponse)
async def preview_schedule(
    booking_id: str,
    data: SchedulePreviewRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    service: CollectibleService = Depends(get_collectible_service),
):
    """Compute the payment schedule for a booking after the given form edits"""
    return await service.preview(tenant, booking_id, data.changes)


@router.post("/bookings/{booking_id}", response_model=CollectiblesCreated, status_code=201)
async def create_collectibles(
    booking_id: str,
    data: CreateCollectiblesRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    notifier: RequestNotifier = Depends(get_request_notifier),
    service: CollectibleService = Depends(get_collectible_service),
):
    """Create collectibles and invoices for every line of the booking's payment schedule"""
    result = await service.create_collectibles_and_invoices(tenant, booking_id, data.configuration)
    result.notifications = notifier.notifications
    return result


# ============================================================================
# UPKEEP
# ============================================================================


@router.delete("/{collectible_id}")
async def delete_collectible(
    collectible_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    service: CollectibleService = Depends(get_collectible_service),
):
    """Soft-delete a collectible"""
    return await service.soft_delete(tenant, collectible_id)


@router.patch("/{collectible_id}/status", response_model=CollectibleResponse)
async def update_collectible_status(
    collectible_id: str,
    data: StatusUpdateRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    service: CollectibleService = Depends(get_collectible_service),
):
    """Change the collection status of a collectible"""
    return await service.update_status(tenant, collectible_id, data.status)


@router.post("/{collectible_id}/invoice-number", response_model=CollectibleResponse)
async def issue_invoice_number(
    collectible_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    service: CollectibleService = Depends(get_collectible_service),
):
    """Generate the next invoice number for a collectible"""
    return await service.issue_invoice_number(tenant, collectible_id)


__all__ = [
    "router",
    "preview_schedule",
    "create_collectibles",
    "delete_collectible",
    "update_collectible_status",
    "issue_invoice_number",
]
