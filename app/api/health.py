"""Health check endpoints."""
import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.core.dependencies import get_ocr_provider
from app.services.ocr.base import OcrProvider

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    logger.debug(
        f"[HEALTH] Health check requested - Client: {request.client.host if request.client else 'unknown'}"
    )
    return {"status": "healthy"}


@router.get("/ocr/health")
async def ocr_health_check(provider: OcrProvider = Depends(get_ocr_provider)):
    """Check that the OCR provider is reachable."""
    healthy = await provider.health_check()
    if not healthy:
        logger.warning("[HEALTH] OCR provider health check failed")
        return JSONResponse(status_code=503, content={"status": "unhealthy"})
    return {"status": "healthy"}
