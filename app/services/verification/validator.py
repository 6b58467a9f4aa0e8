"""Medication details validation."""
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel

from app.core.exceptions import ValidationError


class MedicationDetails(BaseModel):
    """Medication details as stored on an order."""

    name: str
    dosage: str
    quantity: int
    instructions: Optional[str] = None
    refills_authorized: Optional[int] = None
    refills_remaining: Optional[int] = None


class MedicationDetailsUpdate(BaseModel):
    """Partial medication details; unset fields keep their current value."""

    name: Optional[str] = None
    dosage: Optional[str] = None
    quantity: Optional[int] = None
    instructions: Optional[str] = None
    refills_authorized: Optional[int] = None
    refills_remaining: Optional[int] = None


def validate_medication_details(details: Mapping[str, Any]) -> Dict[str, str]:
    """
    Validate medication details.

    Returns:
        Field name -> error message; empty when the details are valid
    """
    errors: Dict[str, str] = {}

    name = details.get("name")
    if not isinstance(name, str) or not name.strip():
        errors["name"] = "Medication name is required"

    dosage = details.get("dosage")
    if not isinstance(dosage, str) or not dosage.strip():
        errors["dosage"] = "Dosage is required"

    quantity = details.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        errors["quantity"] = "Quantity must be greater than 0"

    for field in ("refills_authorized", "refills_remaining"):
        value = details.get(field)
        if value is not None and (not isinstance(value, int) or value < 0):
            errors[field] = "Refills cannot be negative"

    authorized = details.get("refills_authorized")
    remaining = details.get("refills_remaining")
    if (
        "refills_remaining" not in errors
        and isinstance(authorized, int)
        and isinstance(remaining, int)
        and remaining > authorized
    ):
        errors["refills_remaining"] = "Refills remaining cannot exceed refills authorized"

    return errors


def merge_medication_details(
    current: Optional[Mapping[str, Any]], update: MedicationDetailsUpdate
) -> Dict[str, Any]:
    """Overlay the set fields of update on the current details."""
    merged: Dict[str, Any] = dict(current or {})
    merged.update(update.model_dump(exclude_unset=True))
    return merged


def clean_medication_details(details: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate and normalize details for storage.

    Raises:
        ValidationError with field-level messages when invalid
    """
    errors = validate_medication_details(details)
    if errors:
        raise ValidationError(
            "Invalid medication details",
            code="INVALID_MEDICATION_DETAILS",
            detail=errors,
        )
    cleaned = MedicationDetails(
        name=details["name"].strip(),
        dosage=details["dosage"].strip(),
        quantity=details["quantity"],
        instructions=(details.get("instructions") or "").strip() or None,
        refills_authorized=details.get("refills_authorized"),
        refills_remaining=details.get("refills_remaining"),
    )
    return cleaned.model_dump()
