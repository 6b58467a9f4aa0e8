"""OCR provider interface."""
from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel

DEFAULT_CONFIDENCE = 0.85


class OcrExtraction(BaseModel):
    """Text extracted from a prescription image."""

    text: str
    confidence: float = DEFAULT_CONFIDENCE
    provider: Optional[str] = None


@runtime_checkable
class OcrProvider(Protocol):
    """Capabilities an OCR provider offers the orchestrator.

    ``extract_text`` raises ``UpstreamError`` when the provider fails or
    finds no text.
    """

    async def extract_text(self, image_ref: str) -> OcrExtraction:
        ...

    async def health_check(self) -> bool:
        ...
