"""OpenAI vision OCR provider."""
import json
import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from app.core.config import Settings
from app.core.exceptions import UpstreamError
from app.services.ocr.base import DEFAULT_CONFIDENCE, OcrExtraction

logger = logging.getLogger(__name__)

OCR_SYSTEM_PROMPT = """You transcribe photographed medical prescriptions.
Return every piece of legible text on the prescription exactly as written, one line per printed line.
Do not interpret, correct or summarize. If nothing is legible, return an empty string.
Respond with JSON: {"text": "<transcription>", "confidence": <number between 0 and 1>}
where confidence is how sure you are the transcription is accurate."""


class OpenAIVisionOcrProvider:
    """OCR provider using an OpenAI vision-capable chat model."""

    name = "openai"

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.model = settings.openai_ocr_model
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)

    async def extract_text(self, image_ref: str) -> OcrExtraction:
        """
        Extract prescription text from an image.

        Args:
            image_ref: http(s) URL or data URI of the image

        Returns:
            OcrExtraction with the transcription and a confidence score
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": OCR_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": "Transcribe this prescription."},
                            {"type": "image_url", "image_url": {"url": image_ref}},
                        ],
                    },
                ],
                temperature=0,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise UpstreamError(
                f"OCR provider request failed: {e}", code="OCR_PROVIDER_ERROR"
            ) from e

        content = response.choices[0].message.content or ""
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            raise UpstreamError(
                "OCR provider returned malformed output", code="OCR_PROVIDER_ERROR"
            ) from e

        text = str(payload.get("text") or "").strip()
        if not text:
            raise UpstreamError("No text detected in the image", code="OCR_NO_TEXT")

        confidence = payload.get("confidence")
        if not isinstance(confidence, (int, float)) or not 0 <= confidence <= 1:
            confidence = DEFAULT_CONFIDENCE

        logger.info(
            f"[OCR PROVIDER] Extracted {len(text)} characters with confidence {confidence:.2f}"
        )
        return OcrExtraction(
            text=text, confidence=round(float(confidence), 2), provider=self.name
        )

    async def health_check(self) -> bool:
        """Check that the OpenAI API is reachable with the configured key."""
        try:
            await self.client.models.retrieve(self.model)
            return True
        except OpenAIError as e:
            logger.error(f"[OCR PROVIDER] Health check failed: {e}")
            return False
