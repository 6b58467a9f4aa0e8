"""Unit tests for image reference validation."""
import base64

from app.services.ocr.image_validation import validate_image_ref

MAX_BYTES = 1024


def data_uri(media_type: str, payload: bytes) -> str:
    return f"data:{media_type};base64,{base64.b64encode(payload).decode()}"


class TestImageUrls:
    """Test http(s) image references."""

    def test_supported_extensions(self):
        """Test that JPG, PNG and PDF URLs are accepted."""
        for url in (
            "https://cdn.example.com/rx/1.jpg",
            "https://cdn.example.com/rx/1.JPEG",
            "http://cdn.example.com/rx/1.png",
            "https://cdn.example.com/rx/1.pdf",
        ):
            assert validate_image_ref(url, MAX_BYTES) == []

    def test_unsupported_extension(self):
        """Test that other formats are rejected."""
        assert validate_image_ref("https://cdn.example.com/rx/1.gif", MAX_BYTES) == [
            "Image must be in JPG, PNG, or PDF format"
        ]

    def test_unsupported_protocol(self):
        """Test that only http, https and data are allowed."""
        assert validate_image_ref("ftp://cdn.example.com/rx/1.jpg", MAX_BYTES) == [
            "Image URL must use HTTP, HTTPS, or data URI protocol"
        ]

    def test_malformed_reference(self):
        """Test references that are not URLs."""
        assert validate_image_ref("prescription.jpg", MAX_BYTES) == ["Invalid image URL format"]
        assert validate_image_ref("https:///1.jpg", MAX_BYTES) == ["Invalid image URL format"]

    def test_empty_reference(self):
        """Test that a blank reference is rejected."""
        assert validate_image_ref("  ", MAX_BYTES) == ["Image URL is required"]


class TestDataUris:
    """Test data URI image references."""

    def test_supported_media_types(self):
        """Test that JPEG, PNG and PDF payloads are accepted."""
        for media_type in ("image/jpeg", "image/jpg", "image/png", "application/pdf"):
            assert validate_image_ref(data_uri(media_type, b"\x89PNG data"), MAX_BYTES) == []

    def test_unsupported_media_type(self):
        """Test that other media types are rejected."""
        errors = validate_image_ref(data_uri("image/gif", b"GIF89a"), MAX_BYTES)

        assert errors == ["Data URI must be in JPG, PNG, or PDF format"]

    def test_too_large(self):
        """Test the size limit on decoded payloads."""
        errors = validate_image_ref(data_uri("image/png", b"x" * (MAX_BYTES + 1)), MAX_BYTES)

        assert errors == [f"Image exceeds the maximum size of {MAX_BYTES} bytes"]

    def test_empty_payload(self):
        """Test that an empty payload is rejected."""
        assert validate_image_ref("data:image/png;base64,", MAX_BYTES) == ["Image is empty"]

    def test_missing_payload(self):
        """Test a data URI without a comma."""
        assert validate_image_ref("data:image/png;base64", MAX_BYTES) == ["Data URI has no payload"]
