"""Pharmacist review API endpoints."""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from app.api.auth import require_pharmacist
from app.api.orders import AuditEntryResponse, OrderResponse
from app.core.config import Settings
from app.core.dependencies import get_queue_manager, get_settings
from app.core.exceptions import AppError, InternalError
from app.services.review.models import QueueFilters, QueueSort, RejectionReason
from app.services.review.queue import PharmacistQueueManager
from app.services.verification.validator import MedicationDetailsUpdate

router = APIRouter()
logger = logging.getLogger(__name__)


class QueueResponse(BaseModel):
    """Pharmacist queue page response model."""
    orders: List[OrderResponse]
    total_count: int
    total_pages: int
    current_page: int
    page_size: int
    poll_after_seconds: int


class OrderDetailResponse(BaseModel):
    """Order with its audit trail."""
    order: OrderResponse
    audit_trail: List[AuditEntryResponse]


class ApproveRequest(BaseModel):
    """Approve request model."""
    cost: Optional[float] = Field(default=None, allow_inf_nan=False)
    notes: Optional[str] = None
    edited_details: Optional[MedicationDetailsUpdate] = None


class RejectRequest(BaseModel):
    """Reject request model."""
    reason: Optional[str] = None
    notes: Optional[str] = None


class EditRequest(BaseModel):
    """Edit request model."""
    edited_details: MedicationDetailsUpdate
    notes: Optional[str] = None


class RejectionReasonResponse(BaseModel):
    """Rejection reason response model."""
    code: str
    label: str
    requires_notes: bool


@router.get("/pharmacist/orders", response_model=QueueResponse)
async def list_queue(
    request: Request,
    page: int = 1,
    page_size: Optional[int] = None,
    sort_field: str = "created_at",
    sort_direction: str = "asc",
    medication_type: Optional[str] = None,
    urgency: Optional[str] = None,
    patient_name: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    pharmacist_id: str = Depends(require_pharmacist),
    queue: PharmacistQueueManager = Depends(get_queue_manager),
    settings: Settings = Depends(get_settings),
):
    """List orders awaiting pharmacist review."""
    logger.info(
        f"[PHARMACIST API] Queue request - pharmacist: {pharmacist_id}, page: {page}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        result = await queue.list(
            filters=QueueFilters(
                medication_type=medication_type,
                urgency=urgency,
                patient_name=patient_name,
                start_date=start_date,
                end_date=end_date,
            ),
            sort=QueueSort(field=sort_field, direction=sort_direction),
            page=page,
            page_size=page_size,
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(
            f"[PHARMACIST API] Error listing queue - Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise InternalError(f"Error listing queue: {str(e)}")

    return QueueResponse(
        orders=[OrderResponse.model_validate(order) for order in result.orders],
        total_count=result.total_count,
        total_pages=result.total_pages,
        current_page=result.current_page,
        page_size=result.page_size,
        poll_after_seconds=settings.queue_poll_interval_seconds,
    )


@router.get("/pharmacist/rejection-reasons", response_model=List[RejectionReasonResponse])
async def list_rejection_reasons():
    """List the reasons an order can be rejected for."""
    return [
        RejectionReasonResponse(
            code=reason.value,
            label=reason.label,
            requires_notes=reason == RejectionReason.OTHER,
        )
        for reason in RejectionReason
    ]


@router.get("/pharmacist/orders/{order_id}", response_model=OrderDetailResponse)
async def get_queue_order(
    order_id: str,
    pharmacist_id: str = Depends(require_pharmacist),
    queue: PharmacistQueueManager = Depends(get_queue_manager),
):
    """Get an order with its audit trail."""
    order = await queue.get_order(order_id)
    audit_trail = await queue.get_audit_trail(order_id)
    return OrderDetailResponse(
        order=OrderResponse.model_validate(order),
        audit_trail=[AuditEntryResponse.model_validate(entry) for entry in audit_trail],
    )


@router.put("/pharmacist/orders/{order_id}/approve", response_model=OrderResponse)
async def approve_order(
    order_id: str,
    body: ApproveRequest,
    pharmacist_id: str = Depends(require_pharmacist),
    queue: PharmacistQueueManager = Depends(get_queue_manager),
):
    """Approve an order and set its cost."""
    logger.info(
        f"[PHARMACIST API] Approve - order: {order_id}, pharmacist: {pharmacist_id}, cost: {body.cost}"
    )
    return await queue.approve(
        order_id,
        reviewer_id=pharmacist_id,
        cost=body.cost,
        notes=body.notes,
        edited_details=body.edited_details,
    )


@router.put("/pharmacist/orders/{order_id}/reject", response_model=OrderResponse)
async def reject_order(
    order_id: str,
    body: RejectRequest,
    pharmacist_id: str = Depends(require_pharmacist),
    queue: PharmacistQueueManager = Depends(get_queue_manager),
):
    """Reject an order."""
    logger.info(
        f"[PHARMACIST API] Reject - order: {order_id}, pharmacist: {pharmacist_id}, reason: {body.reason}"
    )
    return await queue.reject(
        order_id, reviewer_id=pharmacist_id, reason=body.reason, notes=body.notes
    )


@router.put("/pharmacist/orders/{order_id}/edit", response_model=OrderResponse)
async def edit_order(
    order_id: str,
    body: EditRequest,
    pharmacist_id: str = Depends(require_pharmacist),
    queue: PharmacistQueueManager = Depends(get_queue_manager),
):
    """Edit the medication details of a queued order."""
    logger.info(f"[PHARMACIST API] Edit - order: {order_id}, pharmacist: {pharmacist_id}")
    return await queue.edit(
        order_id, reviewer_id=pharmacist_id, edited_details=body.edited_details, notes=body.notes
    )
