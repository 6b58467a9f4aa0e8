"""OCR orchestrator: drives the per-order OCR job."""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel

from app.core.config import Settings
from app.core.exceptions import ConflictError, UpstreamError, ValidationError
from app.db.models import Order, OrderAuditEntry, utcnow
from app.services.medication.catalog import MedicationCatalog
from app.services.ocr.base import OcrExtraction, OcrProvider
from app.services.ocr.image_validation import validate_image_ref
from app.services.ocr.parser import parse_medication_details
from app.services.orders.status_machine import OrderStatusMachine
from app.services.orders.statuses import OcrStatus, OrderStatus
from app.services.persistence.orders import OrderPersistenceService

logger = logging.getLogger(__name__)

MANUAL_ENTRY_NOTE = "OCR failed, manually entered by user"


class OcrStatusView(BaseModel):
    """Read-only view of an order's OCR job."""

    order_id: str
    status: str
    extracted_text: Optional[str] = None
    confidence: Optional[float] = None
    error: Optional[str] = None
    processed_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OcrStatusView":
        return cls(
            order_id=order.id,
            status=order.ocr_status,
            extracted_text=order.extracted_text,
            confidence=order.ocr_confidence,
            error=order.ocr_error,
            processed_at=order.ocr_processed_at,
        )


class ExtractionStart(BaseModel):
    """Outcome of a start_extraction call."""

    started: bool  # False when the stored result was returned instead
    ocr: OcrStatusView


class OcrOrchestrator:
    """Starts, runs and records OCR jobs.

    ``start_extraction`` runs inside a request and only claims the job;
    ``run_extraction`` does the provider call out-of-band with its own
    database session.
    """

    def __init__(
        self,
        store: OrderPersistenceService,
        provider: OcrProvider,
        settings: Settings,
        catalog: Optional[MedicationCatalog] = None,
        session_factory: Optional[Callable] = None,
    ):
        self.store = store
        self.provider = provider
        self.settings = settings
        self.catalog = catalog
        self.session_factory = session_factory
        self.status_machine = OrderStatusMachine(store)

    async def start_extraction(self, order_id: str, actor_id: str = "system") -> ExtractionStart:
        """
        Claim the OCR job for an order.

        Returns:
            ExtractionStart; started=False with the stored result when OCR
            already completed (no provider call is made)

        Raises:
            NotFoundError, ValidationError (missing/invalid image),
            ConflictError (already processing, wrong status, lost race)
        """
        order = await self.store.require_order(order_id)

        if not order.image_ref:
            raise ValidationError("No image URL found for this order", code="NO_IMAGE")

        if order.ocr_status == OcrStatus.PROCESSING.value:
            raise ConflictError(
                "OCR processing already in progress for this order",
                code="OCR_IN_PROGRESS",
            )

        if order.ocr_status == OcrStatus.COMPLETED.value:
            logger.info(f"[OCR] Order {order_id} already completed; returning stored result")
            return ExtractionStart(started=False, ocr=OcrStatusView.from_order(order))

        errors = validate_image_ref(order.image_ref, self.settings.max_image_bytes)
        if errors:
            raise ValidationError(
                f"Invalid image for OCR: {', '.join(errors)}",
                code="INVALID_IMAGE",
                detail={"image_ref": errors},
            )

        if order.status != OrderStatus.PENDING_VERIFICATION.value:
            raise ConflictError(
                f"OCR can only run while the order is {OrderStatus.PENDING_VERIFICATION.value}",
                code="ILLEGAL_OCR_STATE",
                detail={"status": order.status},
            )

        action = "ocr_retried" if order.ocr_status == OcrStatus.FAILED.value else "ocr_started"
        claimed = await self.store.compare_and_set(
            order_id,
            expected={
                "status": OrderStatus.PENDING_VERIFICATION.value,
                "ocr_status": order.ocr_status,
            },
            values={"ocr_status": OcrStatus.PROCESSING.value, "ocr_error": None},
            audit=OrderAuditEntry(actor_id=actor_id, action=action, timestamp=utcnow()),
        )
        if not claimed:
            raise ConflictError(
                "OCR processing already in progress for this order",
                code="OCR_IN_PROGRESS",
            )

        logger.info(f"[OCR] Claimed OCR job for order {order_id} ({action})")
        order = await self.store.require_order(order_id)
        return ExtractionStart(started=True, ocr=OcrStatusView.from_order(order))

    async def run_extraction(self, order_id: str) -> None:
        """Run a claimed OCR job in its own session. Never raises."""
        if self.session_factory is None:
            await self.process_claimed(self.store, order_id)
            return
        async with self.session_factory() as db:
            await self.process_claimed(OrderPersistenceService(db), order_id)

    async def process_claimed(self, store: OrderPersistenceService, order_id: str) -> None:
        """Call the provider for a claimed job and record the outcome on the order."""
        order = await store.get_order_by_id(order_id)
        if order is None or order.ocr_status != OcrStatus.PROCESSING.value:
            logger.warning(f"[OCR] No claimed OCR job for order {order_id}; skipping")
            return

        timeout = self.settings.ocr_timeout_seconds
        logger.info(f"[OCR] Starting OCR processing for order {order_id}")
        try:
            extraction = await asyncio.wait_for(
                self.provider.extract_text(order.image_ref), timeout=timeout
            )
        except asyncio.TimeoutError:
            await self._record_failure(store, order_id, f"OCR timed out after {timeout:g} seconds")
            return
        except UpstreamError as e:
            await self._record_failure(store, order_id, e.message)
            return
        except Exception as e:
            logger.error(
                f"[OCR] Unexpected error during OCR for order {order_id}: {type(e).__name__}: {e}",
                exc_info=True,
            )
            await self._record_failure(store, order_id, f"Unexpected OCR error: {e}")
            return

        await self._record_success(store, order, extraction)

    async def _record_success(
        self, store: OrderPersistenceService, order: Order, extraction: OcrExtraction
    ) -> None:
        details = parse_medication_details(extraction.text, self.catalog)
        values = {
            "ocr_status": OcrStatus.COMPLETED.value,
            "extracted_text": extraction.text,
            "ocr_confidence": extraction.confidence,
            "ocr_processed_at": utcnow(),
            "ocr_error": None,
            "ocr_source": "provider",
        }
        if details is not None and order.medication_details is None:
            values["medication_details"] = details
            values["medication_type"] = self._medication_type(details["name"])

        try:
            await OrderStatusMachine(store).transition(
                order,
                OrderStatus.AWAITING_VERIFICATION,
                actor_id="ocr",
                action="ocr_completed",
                values=values,
                expected={"ocr_status": OcrStatus.PROCESSING.value},
            )
        except ConflictError as e:
            logger.error(f"[OCR] Could not record OCR result for order {order.id}: {e.message}")
            return
        logger.info(
            f"[OCR] OCR completed for order {order.id} with confidence {extraction.confidence}"
        )

    async def _record_failure(
        self, store: OrderPersistenceService, order_id: str, error: str
    ) -> None:
        recorded = await store.compare_and_set(
            order_id,
            expected={"ocr_status": OcrStatus.PROCESSING.value},
            values={
                "ocr_status": OcrStatus.FAILED.value,
                "ocr_error": error,
                "ocr_processed_at": utcnow(),
            },
            audit=OrderAuditEntry(
                actor_id="ocr", action="ocr_failed", notes=error, timestamp=utcnow()
            ),
        )
        if recorded:
            logger.error(f"[OCR] OCR failed for order {order_id}: {error}")
        else:
            logger.error(f"[OCR] Could not record OCR failure for order {order_id}: {error}")

    async def enter_manual_text(self, order_id: str, text: str, actor_id: str) -> Order:
        """
        Complete OCR with text typed by the user, bypassing the provider.

        Raises:
            ValidationError (empty text), NotFoundError, ConflictError
        """
        if not text or not text.strip():
            raise ValidationError("Extracted text is required", code="TEXT_REQUIRED")

        order = await self.store.require_order(order_id)
        if order.ocr_status == OcrStatus.COMPLETED.value:
            raise ConflictError(
                "OCR has already completed successfully. Manual text entry not needed.",
                code="OCR_ALREADY_COMPLETED",
                detail={"current_text": order.extracted_text, "ocr_status": order.ocr_status},
            )
        if order.ocr_status == OcrStatus.PROCESSING.value:
            raise ConflictError(
                "OCR processing is in progress for this order",
                code="OCR_IN_PROGRESS",
            )

        text = text.strip()
        values = {
            "ocr_status": OcrStatus.COMPLETED.value,
            "extracted_text": text,
            "ocr_confidence": None,
            "ocr_processed_at": utcnow(),
            "ocr_error": MANUAL_ENTRY_NOTE if order.ocr_status == OcrStatus.FAILED.value else None,
            "ocr_source": "manual",
        }
        details = parse_medication_details(text, self.catalog)
        if details is not None and order.medication_details is None:
            values["medication_details"] = details
            values["medication_type"] = self._medication_type(details["name"])

        order = await self.status_machine.transition(
            order,
            OrderStatus.AWAITING_VERIFICATION,
            actor_id=actor_id,
            action="manual_text_entered",
            values=values,
            expected={"ocr_status": order.ocr_status},
        )
        logger.info(f"[OCR] Manual text entry completed for order {order_id}")
        return order

    async def get_status(self, order_id: str) -> OcrStatusView:
        """Read the OCR state of an order."""
        order = await self.store.require_order(order_id)
        return OcrStatusView.from_order(order)

    async def health_check(self) -> bool:
        return await self.provider.health_check()

    def _medication_type(self, name: Optional[str]) -> Optional[str]:
        return self.catalog.medication_type(name) if self.catalog else None
