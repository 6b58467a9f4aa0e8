"""Image reference validation for OCR."""
import base64
import binascii
from typing import List
from urllib.parse import unquote, urlparse

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".pdf")
SUPPORTED_DATA_TYPES = ("image/jpeg", "image/jpg", "image/png", "application/pdf")
SUPPORTED_SCHEMES = ("http", "https", "data")


def _data_uri_size(image_ref: str) -> int:
    """Decoded payload size of a data URI in bytes."""
    header, _, payload = image_ref.partition(",")
    if header.lower().endswith(";base64"):
        try:
            return len(base64.b64decode(payload, validate=False))
        except (binascii.Error, ValueError):
            return -1
    return len(unquote(payload).encode())


def validate_image_ref(image_ref: str, max_bytes: int) -> List[str]:
    """
    Validate an image reference before it is sent to the OCR provider.

    Args:
        image_ref: http(s) URL or data URI of the uploaded prescription
        max_bytes: Largest accepted data URI payload

    Returns:
        List of error messages; empty when the reference is usable
    """
    errors: List[str] = []

    if not image_ref or not image_ref.strip():
        errors.append("Image URL is required")
        return errors

    image_ref = image_ref.strip()
    parsed = urlparse(image_ref)
    if parsed.scheme not in SUPPORTED_SCHEMES:
        if not parsed.scheme:
            errors.append("Invalid image URL format")
        else:
            errors.append("Image URL must use HTTP, HTTPS, or data URI protocol")
        return errors

    if parsed.scheme == "data":
        if not any(image_ref.lower().startswith(f"data:{kind}") for kind in SUPPORTED_DATA_TYPES):
            errors.append("Data URI must be in JPG, PNG, or PDF format")
        if "," not in image_ref:
            errors.append("Data URI has no payload")
            return errors
        size = _data_uri_size(image_ref)
        if size < 0:
            errors.append("Data URI payload is not valid base64")
        elif size == 0:
            errors.append("Image is empty")
        elif size > max_bytes:
            errors.append(f"Image exceeds the maximum size of {max_bytes} bytes")
    else:
        if not parsed.netloc:
            errors.append("Invalid image URL format")
        elif not parsed.path.lower().endswith(SUPPORTED_EXTENSIONS):
            errors.append("Image must be in JPG, PNG, or PDF format")

    return errors
