"""Retry wrapper for OCR providers."""
import asyncio
import logging

from app.core.exceptions import UpstreamError
from app.services.ocr.base import OcrExtraction, OcrProvider

logger = logging.getLogger(__name__)


class RetryingOcrProvider:
    """Wraps an OcrProvider and retries failed extractions with linear backoff.

    Only ``UpstreamError`` is retried. The delay before attempt n+1 is
    ``delay_seconds * n``.
    """

    def __init__(self, provider: OcrProvider, max_attempts: int = 3, delay_seconds: float = 1.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.provider = provider
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds

    async def extract_text(self, image_ref: str) -> OcrExtraction:
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self.provider.extract_text(image_ref)
            except UpstreamError as e:
                last_error = e
                logger.warning(
                    f"[OCR RETRY] Attempt {attempt}/{self.max_attempts} failed: {e.message}"
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.delay_seconds * attempt)

        raise UpstreamError(
            f"OCR failed after {self.max_attempts} attempts. Last error: {last_error.message}",
            code=last_error.code,
        )

    async def health_check(self) -> bool:
        return await self.provider.health_check()


def with_retries(provider: OcrProvider, max_attempts: int, delay_seconds: float) -> OcrProvider:
    """Wrap provider in retries when more than one attempt is configured."""
    if max_attempts <= 1:
        return provider
    return RetryingOcrProvider(provider, max_attempts=max_attempts, delay_seconds=delay_seconds)
