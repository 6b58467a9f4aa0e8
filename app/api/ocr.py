"""OCR API endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Response
from pydantic import BaseModel

from app.api.orders import OrderResponse
from app.core.config import Settings
from app.core.dependencies import get_ocr_orchestrator, get_settings
from app.core.exceptions import AppError, InternalError
from app.services.ocr.orchestrator import OcrOrchestrator, OcrStatusView

router = APIRouter()
logger = logging.getLogger(__name__)


class ProcessOcrResponse(BaseModel):
    """Process OCR response model."""
    order_id: str
    message: str
    ocr: OcrStatusView
    poll_after_seconds: Optional[int] = None


class ManualTextRequest(BaseModel):
    """Manual text entry request model."""
    extracted_text: str
    entered_by: Optional[str] = None


@router.post("/orders/{order_id}/process-ocr", response_model=ProcessOcrResponse)
async def process_ocr(
    order_id: str,
    response: Response,
    background_tasks: BackgroundTasks,
    orchestrator: OcrOrchestrator = Depends(get_ocr_orchestrator),
    settings: Settings = Depends(get_settings),
):
    """
    Start OCR for an order.

    202 when a job was started (poll ocr-status), 200 with the stored result
    when OCR already completed.
    """
    logger.info(f"[OCR API] Process OCR request - order: {order_id}")

    try:
        start = await orchestrator.start_extraction(order_id, actor_id="patient")
    except AppError:
        raise
    except Exception as e:
        logger.error(
            f"[OCR API] Error starting OCR - order: {order_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise InternalError(f"Error starting OCR: {str(e)}")

    if not start.started:
        return ProcessOcrResponse(
            order_id=order_id,
            message="OCR already completed for this order",
            ocr=start.ocr,
        )

    background_tasks.add_task(orchestrator.run_extraction, order_id)
    response.status_code = 202
    response.headers["Retry-After"] = str(settings.order_poll_interval_seconds)
    return ProcessOcrResponse(
        order_id=order_id,
        message="OCR processing started",
        ocr=start.ocr,
        poll_after_seconds=settings.order_poll_interval_seconds,
    )


@router.get("/orders/{order_id}/ocr-status", response_model=OcrStatusView)
async def get_ocr_status(
    order_id: str,
    orchestrator: OcrOrchestrator = Depends(get_ocr_orchestrator),
):
    """Get the OCR state of an order."""
    return await orchestrator.get_status(order_id)


@router.put("/orders/{order_id}/manual-text", response_model=OrderResponse)
async def enter_manual_text(
    order_id: str,
    body: ManualTextRequest,
    orchestrator: OcrOrchestrator = Depends(get_ocr_orchestrator),
):
    """Complete OCR with text typed in by the user."""
    logger.info(
        f"[OCR API] Manual text entry - order: {order_id}, length: {len(body.extracted_text)}"
    )
    return await orchestrator.enter_manual_text(
        order_id, body.extracted_text, actor_id=body.entered_by or "patient"
    )
