"""Best-effort medication details extraction from OCR text."""
import re
from typing import Any, Dict, Optional

from app.services.medication.catalog import MedicationCatalog

DOSAGE_PATTERN = re.compile(
    r"(?<![\w.])(\d+(?:[.,]\d+)?)\s?(mg|mcg|µg|g|ml|iu|units?)(?!\w)", re.IGNORECASE
)
QUANTITY_PATTERNS = [
    re.compile(r"\b(?:qty|quantity|disp(?:ense)?)\s*[:#.]?\s*(\d+)", re.IGNORECASE),
    re.compile(r"#\s?(\d+)\b"),
    re.compile(
        r"\b(\d+)\s*(?:tablets?|tabs?|capsules?|caps?|pills?|sachets?|ampoules?)\b",
        re.IGNORECASE,
    ),
]
REFILLS_PATTERN = re.compile(r"\brefills?\s*[:#]?\s*(\d+)", re.IGNORECASE)
INSTRUCTIONS_PATTERN = re.compile(
    r"\b(?:sig|directions|instructions)\s*[:.]\s*(.+)", re.IGNORECASE
)
NAME_BEFORE_DOSAGE = re.compile(r"([A-Za-z][A-Za-z\-]{2,})\s+$")


def _find_quantity(text: str) -> Optional[int]:
    for pattern in QUANTITY_PATTERNS:
        match = pattern.search(text)
        if match:
            quantity = int(match.group(1))
            if quantity > 0:
                return quantity
    return None


def parse_medication_details(
    text: str, catalog: Optional[MedicationCatalog] = None
) -> Optional[Dict[str, Any]]:
    """
    Guess medication details from extracted prescription text.

    Args:
        text: OCR or manually entered text
        catalog: Catalog used to recognize medication names

    Returns:
        Details dict when name, dosage and a positive quantity are all found,
        None otherwise
    """
    if not text or not text.strip():
        return None

    dosage_match = DOSAGE_PATTERN.search(text)
    if not dosage_match:
        return None
    amount = dosage_match.group(1).replace(",", ".")
    dosage = f"{amount}{dosage_match.group(2).lower()}"

    name = None
    if catalog is not None:
        medication = catalog.find_in_text(text)
        if medication:
            name = medication.name
    if name is None:
        # Fall back to the word right before the dosage, e.g. "Amoxicillin 500mg"
        before = NAME_BEFORE_DOSAGE.search(text[: dosage_match.start()])
        if before:
            name = before.group(1).lower()
    if not name:
        return None

    quantity = _find_quantity(text)
    if quantity is None:
        return None

    details: Dict[str, Any] = {
        "name": name,
        "dosage": dosage,
        "quantity": quantity,
        "instructions": None,
        "refills_authorized": None,
        "refills_remaining": None,
    }

    instructions_match = INSTRUCTIONS_PATTERN.search(text)
    if instructions_match:
        details["instructions"] = instructions_match.group(1).strip()

    refills_match = REFILLS_PATTERN.search(text)
    if refills_match:
        refills = int(refills_match.group(1))
        details["refills_authorized"] = refills
        details["refills_remaining"] = refills

    return details
