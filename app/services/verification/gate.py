"""Verification gate: patient confirmation of extracted medication details."""
import logging
from typing import Any, Dict, Mapping, Optional

from app.core.exceptions import ConflictError
from app.db.models import Order, OrderAuditEntry, utcnow
from app.services.medication.catalog import MedicationCatalog
from app.services.orders.status_machine import OrderStatusMachine
from app.services.orders.statuses import OcrStatus, OrderStatus
from app.services.persistence.orders import OrderPersistenceService
from app.services.verification.validator import clean_medication_details

logger = logging.getLogger(__name__)

OPEN_STATUSES = (
    OrderStatus.PENDING_VERIFICATION.value,
    OrderStatus.AWAITING_VERIFICATION.value,
)


class VerificationGate:
    """Lets the submitting party confirm or skip the extracted details.

    Verification happens once per order. Either action makes the order
    visible in the pharmacist queue.
    """

    def __init__(self, store: OrderPersistenceService, catalog: Optional[MedicationCatalog] = None):
        self.store = store
        self.catalog = catalog
        self.status_machine = OrderStatusMachine(store)

    async def confirm(
        self,
        order_id: str,
        details: Mapping[str, Any],
        verified_by: str,
        notes: Optional[str] = None,
    ) -> Order:
        """Store confirmed medication details and forward the order to the queue."""
        cleaned = clean_medication_details(details)
        order = await self.store.require_order(order_id)
        self._check_open(order)

        values = {
            "medication_details": cleaned,
            "medication_type": self.catalog.medication_type(cleaned["name"]) if self.catalog else None,
        }
        return await self._verify(order, values, verified_by, notes, skipped=False)

    async def skip(self, order_id: str, verified_by: str, notes: Optional[str] = None) -> Order:
        """Forward the order to the queue without confirming its details."""
        order = await self.store.require_order(order_id)
        self._check_open(order)
        return await self._verify(order, {}, verified_by, notes, skipped=True)

    def _check_open(self, order: Order) -> None:
        if order.verified_at is not None:
            raise ConflictError(
                "Order has already been verified",
                code="ALREADY_VERIFIED",
                detail={"verification": order.verification},
            )
        if order.status not in OPEN_STATUSES:
            raise ConflictError(
                f"Order can no longer be verified in status {order.status}",
                code="VERIFICATION_CLOSED",
                detail={"status": order.status},
            )
        if order.ocr_status == OcrStatus.PROCESSING.value:
            raise ConflictError(
                "OCR processing is still in progress for this order",
                code="OCR_IN_PROGRESS",
            )
        if order.reviews:
            raise ConflictError(
                "Order is already under pharmacist review",
                code="UNDER_REVIEW",
            )

    async def _verify(
        self,
        order: Order,
        values: Dict[str, Any],
        verified_by: str,
        notes: Optional[str],
        skipped: bool,
    ) -> Order:
        now = utcnow()
        action = "verification_skipped" if skipped else "verification_confirmed"
        values = {
            **values,
            "verification": {
                "verified_by": verified_by,
                "notes": notes,
                "skipped": skipped,
                "verified_at": now.isoformat(),
            },
            "verified_at": now,
        }

        if order.status == OrderStatus.PENDING_VERIFICATION.value:
            order = await self.status_machine.transition(
                order,
                OrderStatus.AWAITING_VERIFICATION,
                actor_id=verified_by,
                action=action,
                values=values,
                expected={"verified_at": None, "ocr_status": order.ocr_status},
                notes=notes,
            )
        else:
            updated = await self.store.compare_and_set(
                order.id,
                expected={"status": order.status, "verified_at": None},
                values=values,
                audit=OrderAuditEntry(
                    actor_id=verified_by, action=action, notes=notes, timestamp=now
                ),
            )
            if not updated:
                raise ConflictError(
                    f"Order {order.id} was modified concurrently; reload and retry",
                    code="STALE_ORDER",
                )
            order = await self.store.require_order(order.id)

        logger.info(f"[VERIFICATION] Order {order.id} {action} by {verified_by}")
        return order
