"""Collectibles service - Business logic for turning bookings into collectibles and invoices"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import HTTPException
from pydantic import ValidationError

from ...auth import TenantContext
from ...cache import invalidate_listing_cache
from ...config import VAT_RATE, WITHHOLDING_TAX_RATE
from ...notifications import LoggingNotifier, Notifier
from ..documents.gateway import DocumentGateway
from .schedule import (
    apply_field_change,
    compute_schedule,
    config_from_booking,
    due_date_and_period,
    schedule_total,
)
from .schemas import (
    BillingConfiguration,
    CollectiblesCreated,
    FieldChange,
    PaymentScheduleEntry,
    SchedulePreviewResponse,
)

logger = logging.getLogger(__name__)

BOOKINGS = "booking"
COLLECTIBLES = "collectibles"
INVOICES = "invoices"


class CollectibleService:
    """Service layer for collectible/invoice generation and upkeep"""

    def __init__(
        self,
        gateway: DocumentGateway,
        notifier: Optional[Notifier] = None,
        invalidate: Callable[[str, str], object] = invalidate_listing_cache,
    ):
        self.gateway = gateway
        self.notifier = notifier or LoggingNotifier()
        self.invalidate = invalidate

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_booking(self, tenant: TenantContext, booking_id: str) -> dict:
        """Get a booking owned by the tenant"""
        booking = await self.gateway.get_by_id(BOOKINGS, booking_id)
        if not booking or booking.get("company_id") != tenant.company_id:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    async def get_collectible(self, tenant: TenantContext, collectible_id: str) -> dict:
        """Get a live (not soft-deleted) collectible owned by the tenant"""
        collectible = await self.gateway.get_by_id(COLLECTIBLES, collectible_id)
        if (
            not collectible
            or collectible.get("company_id") != tenant.company_id
            or collectible.get("deleted")
        ):
            raise HTTPException(status_code=404, detail="Collectible not found")
        return collectible

    def _failed(self, context: str, action: str, error: Exception) -> HTTPException:
        """Log a storage failure, tell the user, and build the 500 to raise"""
        logger.error(f"❌ Error {context}: {error}")
        logger.exception(error)
        message = f"Failed to {action}. Please try again."
        self.notifier.notify("Error", message, "destructive")
        return HTTPException(status_code=500, detail=message)

    # ------------------------------------------------------------------
    # Schedule preview
    # ------------------------------------------------------------------

    async def preview(
        self, tenant: TenantContext, booking_id: str, changes: list[FieldChange]
    ) -> SchedulePreviewResponse:
        """Prefill billing terms from the booking, replay form edits, and compute the schedule"""
        booking = await self.get_booking(tenant, booking_id)
        config = config_from_booking(booking)

        try:
            for change in changes:
                config = apply_field_change(config, change.field, change.value)
            entries = compute_schedule(config)
        except (ValidationError, ValueError) as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        return SchedulePreviewResponse(
            booking_id=booking_id,
            configuration=config,
            schedule=entries,
            total=schedule_total(entries),
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def build_collectible(
        self,
        tenant: TenantContext,
        booking_id: str,
        booking: dict,
        config: BillingConfiguration,
        entry: PaymentScheduleEntry,
    ) -> dict:
        """Collectible record for one schedule line, with booking data denormalized"""
        due_date, period = due_date_and_period(entry, config)
        client = booking.get("client") or {}
        signed_contract = (booking.get("projectCompliance") or {}).get("signedContract") or {}

        return {
            "booking_id": booking_id,
            "company_id": tenant.company_id,
            "product": {
                "id": booking.get("product_id"),
                "name": booking.get("product_name"),
                "owner": booking.get("product_owner"),
            },
            "client": {
                "id": client.get("id"),
                "name": client.get("name"),
                "company_name": client.get("company_name"),
                "company_id": client.get("company_id"),
            },
            "booking": {
                "id": booking_id,
                "project_name": booking.get("project_name"),
                "reservation_id": booking.get("reservation_id"),
                "start_date": booking.get("start_date"),
                "end_date": booking.get("end_date"),
            },
            "billing_type": config.billing_type.value,
            "rate": config.rate,
            "total_months": config.total_months,
            "deposit_required": config.deposit_required,
            "deposit_terms": config.deposit_terms,
            "deposit_amount": config.deposit_amount,
            "advance_required": config.advance_required,
            "advance_terms": config.advance_terms,
            "amount": entry.amount,
            "vat_amount": entry.amount * VAT_RATE,
            "with_holding_tax": entry.amount * WITHHOLDING_TAX_RATE,
            "due_date": due_date.isoformat() if due_date else None,
            "period": period,
            "status": "pending",
            "deleted": False,
            "contract_pdf_url": signed_contract.get("fileUrl"),
            "created_by": tenant.user_id,
        }

    async def create_collectibles_and_invoices(
        self,
        tenant: TenantContext,
        booking_id: str,
        config: BillingConfiguration,
        entries: Optional[list[PaymentScheduleEntry]] = None,
    ) -> CollectiblesCreated:
        """
        Persist a payment schedule as paired collectible and invoice records.

        Collectibles are created together, then their invoices, then every
        collectible gets its invoice_id, then the booking is flagged
        isCollectibles. If any step fails, every record created so far is
        deleted again and the booking is left unflagged.
        """
        booking = await self.get_booking(tenant, booking_id)
        if booking.get("isCollectibles"):
            raise HTTPException(
                status_code=409, detail="Collectibles were already created for this booking"
            )

        if entries is None:
            try:
                entries = compute_schedule(config)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e)) from e
        if not entries:
            raise HTTPException(status_code=400, detail="Payment schedule is empty")

        logger.info(
            f"📥 Creating {len(entries)} collectibles for booking {booking_id} (company {tenant.company_id})"
        )

        collectibles = [
            self.build_collectible(tenant, booking_id, booking, config, entry) for entry in entries
        ]
        created: list[tuple[str, str]] = []

        try:
            collectible_ids = await self._create_all(COLLECTIBLES, collectibles, created)

            invoices = [
                {"collectible_id": collectible_id, **data}
                for collectible_id, data in zip(collectible_ids, collectibles)
            ]
            invoice_ids = await self._create_all(INVOICES, invoices, created)

            # Wait for every back-patch before raising so none races the rollback
            results = await asyncio.gather(
                *(
                    self.gateway.update(COLLECTIBLES, collectible_id, {"invoice_id": invoice_id})
                    for collectible_id, invoice_id in zip(collectible_ids, invoice_ids)
                ),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result

            await self.gateway.update(BOOKINGS, booking_id, {"isCollectibles": True})
        except Exception as e:
            await self._compensate(created)
            raise self._failed(f"creating collectibles for booking {booking_id}", "create collectibles", e) from e

        for collection in (COLLECTIBLES, INVOICES, BOOKINGS):
            self.invalidate(tenant.company_id, collection)

        total = schedule_total(entries)
        logger.info(f"✅ Created {len(collectible_ids)} collectibles/invoices for booking {booking_id}")
        self.notifier.notify(
            "Success",
            f"{len(collectible_ids)} collectible(s) created for booking {booking_id}",
        )

        return CollectiblesCreated(
            booking_id=booking_id,
            collectible_ids=collectible_ids,
            invoice_ids=invoice_ids,
            total=total,
        )

    async def _create_all(
        self, collection: str, records: list[dict], created: list[tuple[str, str]]
    ) -> list[str]:
        """Create records concurrently; every success is tracked even when a sibling fails"""
        results = await asyncio.gather(
            *(self.gateway.create(collection, record) for record in records),
            return_exceptions=True,
        )

        ids: list[str] = []
        failure: Optional[BaseException] = None
        for result in results:
            if isinstance(result, BaseException):
                failure = failure or result
            else:
                created.append((collection, result))
                ids.append(result)

        if failure is not None:
            raise failure
        return ids

    async def _compensate(self, created: list[tuple[str, str]]) -> None:
        """Delete records written before a failure, newest phase first"""
        if not created:
            return

        logger.warning(f"↩️ Rolling back {len(created)} partially created records")
        results = await asyncio.gather(
            *(self.gateway.delete(collection, doc_id) for collection, doc_id in reversed(created)),
            return_exceptions=True,
        )
        for (collection, doc_id), result in zip(reversed(created), results):
            if isinstance(result, BaseException):
                logger.error(f"❌ Could not roll back {collection}/{doc_id}: {result}")

    # ------------------------------------------------------------------
    # Upkeep
    # ------------------------------------------------------------------

    async def soft_delete(self, tenant: TenantContext, collectible_id: str) -> dict:
        """Hide a collectible from listings"""
        await self.get_collectible(tenant, collectible_id)
        try:
            await self.gateway.update(COLLECTIBLES, collectible_id, {"deleted": True})
        except Exception as e:
            raise self._failed(f"deleting collectible {collectible_id}", "delete collectible", e) from e
        self.invalidate(tenant.company_id, COLLECTIBLES)

        logger.info(f"🗑️ Collectible {collectible_id} soft-deleted by {tenant.user_id}")
        self.notifier.notify("Collectible deleted", "The collectible has been removed.")
        return {"message": "Collectible deleted"}

    async def update_status(self, tenant: TenantContext, collectible_id: str, status: str) -> dict:
        """Move a collectible to pending/collected/overdue/paid"""
        collectible = await self.get_collectible(tenant, collectible_id)
        try:
            await self.gateway.update(COLLECTIBLES, collectible_id, {"status": status})
        except Exception as e:
            raise self._failed(
                f"updating status of collectible {collectible_id}", "update collectible status", e
            ) from e
        self.invalidate(tenant.company_id, COLLECTIBLES)

        logger.info(f"🔄 Collectible {collectible_id}: {collectible.get('status')} -> {status}")
        return {**collectible, "status": status}

    async def next_invoice_number(self, tenant: TenantContext) -> str:
        """Next zero-padded number after the highest numeric invoice number of the company"""
        invoices = await self.gateway.find(INVOICES, {"company_id": tenant.company_id})

        highest = 0
        for invoice in invoices:
            try:
                highest = max(highest, int(str(invoice.get("invoice_number") or "")))
            except ValueError:
                continue

        return str(highest + 1).zfill(4)

    async def issue_invoice_number(self, tenant: TenantContext, collectible_id: str) -> dict:
        """
        Assign the next invoice number to a collectible and its paired invoice.
        Both records get the number or neither does: when one write fails the
        other is put back to its previous values.
        """
        collectible = await self.get_collectible(tenant, collectible_id)
        if collectible.get("invoice_number"):
            raise HTTPException(status_code=409, detail="Invoice number already issued")

        try:
            invoice_number = await self.next_invoice_number(tenant)
            fields = {
                "invoice_number": invoice_number,
                "invoice_date": datetime.now(timezone.utc).isoformat(),
            }

            targets = [(COLLECTIBLES, collectible_id, collectible)]
            invoice_id = collectible.get("invoice_id")
            if invoice_id:
                invoice = await self.gateway.get_by_id(INVOICES, invoice_id)
                targets.append((INVOICES, invoice_id, invoice or {}))

            results = await asyncio.gather(
                *(self.gateway.update(collection, doc_id, fields) for collection, doc_id, _ in targets),
                return_exceptions=True,
            )
            failure = next((r for r in results if isinstance(r, BaseException)), None)
            if failure is not None:
                written = [t for t, r in zip(targets, results) if not isinstance(r, BaseException)]
                await self._restore(written, list(fields))
                raise failure
        except Exception as e:
            raise self._failed(
                f"issuing invoice number for collectible {collectible_id}", "generate invoice number", e
            ) from e

        self.invalidate(tenant.company_id, COLLECTIBLES)
        self.invalidate(tenant.company_id, INVOICES)

        self.notifier.notify("Success", f"Invoice {invoice_number} generated successfully")
        return {**collectible, **fields}

    async def _restore(self, targets: list[tuple[str, str, dict]], keys: list[str]) -> None:
        """Put the given keys of each record back to their values before a failed write"""
        results = await asyncio.gather(
            *(
                self.gateway.update(collection, doc_id, {key: previous.get(key) for key in keys})
                for collection, doc_id, previous in targets
            ),
            return_exceptions=True,
        )
        for (collection, doc_id, _), result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.error(f"❌ Could not restore {collection}/{doc_id}: {result}")
