"""Order API endpoints."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel

from app.core.dependencies import get_ocr_orchestrator, get_order_intake, get_order_store
from app.core.exceptions import AppError, InternalError
from app.services.ocr.orchestrator import OcrOrchestrator
from app.services.orders.intake import OrderIntake
from app.services.orders.statuses import Urgency
from app.services.persistence.orders import OrderPersistenceService

router = APIRouter()
logger = logging.getLogger(__name__)


class ReviewResponse(BaseModel):
    """Pharmacist review response model."""
    id: int
    reviewer_id: str
    decision: str
    notes: Optional[str] = None
    reason: Optional[str] = None
    cost: Optional[float] = None
    reviewed_at: datetime

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Order response model."""
    id: str
    patient_profile_id: Optional[str] = None
    patient_name: Optional[str] = None
    urgency: str
    status: str
    image_ref: Optional[str] = None
    ocr_status: str
    extracted_text: Optional[str] = None
    ocr_confidence: Optional[float] = None
    ocr_processed_at: Optional[datetime] = None
    ocr_error: Optional[str] = None
    ocr_source: Optional[str] = None
    medication_details: Optional[Dict[str, Any]] = None
    medication_type: Optional[str] = None
    verification: Optional[Dict[str, Any]] = None
    verified_at: Optional[datetime] = None
    review_decision: Optional[str] = None
    cost: Optional[float] = None
    created_at: datetime
    updated_at: datetime
    reviews: List[ReviewResponse] = []

    class Config:
        from_attributes = True


class AuditEntryResponse(BaseModel):
    """Audit entry response model."""
    id: int
    actor_id: str
    action: str
    notes: Optional[str] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class CreateOrderRequest(BaseModel):
    """Create order request model."""
    image_ref: Optional[str] = None
    patient_profile_id: Optional[str] = None
    patient_name: Optional[str] = None
    urgency: Urgency = Urgency.MEDIUM
    auto_process_ocr: bool = True


@router.post("/orders", response_model=OrderResponse, status_code=201)
async def create_order(
    body: CreateOrderRequest,
    background_tasks: BackgroundTasks,
    intake: OrderIntake = Depends(get_order_intake),
    orchestrator: OcrOrchestrator = Depends(get_ocr_orchestrator),
):
    """Create an order and, when it has an image, start OCR."""
    logger.info(
        f"[ORDERS] Create order request - patient: {body.patient_profile_id}, "
        f"urgency: {body.urgency.value}, auto_process_ocr: {body.auto_process_ocr}"
    )

    try:
        order = await intake.create_order(
            image_ref=body.image_ref,
            patient_profile_id=body.patient_profile_id,
            patient_name=body.patient_name,
            urgency=body.urgency.value,
        )

        if body.auto_process_ocr and order.image_ref:
            start = await orchestrator.start_extraction(
                order.id, actor_id=order.patient_profile_id or "patient"
            )
            if start.started:
                background_tasks.add_task(orchestrator.run_extraction, order.id)
            order = await intake.store.require_order(order.id)

        return order

    except AppError:
        raise
    except Exception as e:
        logger.error(
            f"[ORDERS] Error creating order - Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise InternalError(f"Error creating order: {str(e)}")


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    request: Request,
    store: OrderPersistenceService = Depends(get_order_store),
):
    """Get an order by id."""
    logger.debug(
        f"[ORDERS] Get order {order_id} - "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )
    return await store.require_order(order_id)


@router.get("/orders/{order_id}/audit", response_model=List[AuditEntryResponse])
async def get_order_audit(
    order_id: str,
    store: OrderPersistenceService = Depends(get_order_store),
):
    """Get the audit trail of an order, oldest first."""
    return await store.get_audit_trail(order_id)
