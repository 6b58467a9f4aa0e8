"""Order and OCR status enumerations."""
from enum import Enum


class OrderStatus(str, Enum):
    """Lifecycle statuses of a prescription order."""

    PENDING_VERIFICATION = "pending_verification"  # Uploaded, OCR not yet done
    AWAITING_VERIFICATION = "awaiting_verification"  # In the pharmacist queue
    AWAITING_PAYMENT = "awaiting_payment"  # Approved, cost set
    PREPARING = "preparing"  # Paid
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"  # Terminal
    REJECTED = "rejected"  # Terminal

    def __str__(self) -> str:
        """Return the string value of the status."""
        return self.value


class OcrStatus(str, Enum):
    """States of the OCR job embedded in each order."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class Urgency(str, Enum):
    """Queue urgency of an order."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    def __str__(self) -> str:
        return self.value
