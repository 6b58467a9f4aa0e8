"""Patient verification endpoint."""
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.orders import OrderResponse
from app.core.dependencies import get_verification_gate
from app.services.verification.gate import VerificationGate
from app.services.verification.validator import MedicationDetailsUpdate

router = APIRouter()
logger = logging.getLogger(__name__)


class OcrReviewRequest(BaseModel):
    """Confirm or skip the extracted medication details."""
    action: Literal["confirm", "skip"]
    medication_details: Optional[MedicationDetailsUpdate] = None
    verified_by: Optional[str] = None
    notes: Optional[str] = None


@router.put("/orders/{order_id}/ocr-review", response_model=OrderResponse)
async def review_ocr(
    order_id: str,
    body: OcrReviewRequest,
    gate: VerificationGate = Depends(get_verification_gate),
):
    """Confirm (with details) or skip verification; forwards the order to the pharmacist queue."""
    verified_by = body.verified_by or "patient"
    logger.info(f"[VERIFICATION API] {body.action} - order: {order_id}, by: {verified_by}")

    if body.action == "skip":
        return await gate.skip(order_id, verified_by=verified_by, notes=body.notes)

    details = (
        body.medication_details.model_dump(exclude_unset=True)
        if body.medication_details is not None
        else {}
    )
    return await gate.confirm(order_id, details, verified_by=verified_by, notes=body.notes)
