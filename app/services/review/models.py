"""Pharmacist review models."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ReviewDecision(str, Enum):
    """Pharmacist review decisions."""

    APPROVED = "approved"
    REJECTED = "rejected"
    EDITED = "edited"  # Not terminal

    def __str__(self) -> str:
        return self.value


class RejectionReason(str, Enum):
    """Enumerated reasons a pharmacist may reject an order for."""

    ILLEGIBLE_PRESCRIPTION = "illegible_prescription"
    INCOMPLETE_MEDICATION_INFORMATION = "incomplete_medication_information"
    UNCLEAR_DOSAGE_INSTRUCTIONS = "unclear_dosage_instructions"
    PATIENT_INFORMATION_MISMATCH = "patient_information_mismatch"
    DRUG_INTERACTION_CONCERNS = "drug_interaction_concerns"
    INVALID_PRESCRIPTION_FORMAT = "invalid_prescription_format"
    EXPIRED_PRESCRIPTION = "expired_prescription"
    INSURANCE_COVERAGE_ISSUES = "insurance_coverage_issues"
    OTHER = "other"  # Requires notes

    @property
    def label(self) -> str:
        return REJECTION_REASON_LABELS[self]

    @classmethod
    def is_valid(cls, value: Optional[str]) -> bool:
        return value in cls._value2member_map_


REJECTION_REASON_LABELS = {
    RejectionReason.ILLEGIBLE_PRESCRIPTION: "Illegible prescription",
    RejectionReason.INCOMPLETE_MEDICATION_INFORMATION: "Incomplete medication information",
    RejectionReason.UNCLEAR_DOSAGE_INSTRUCTIONS: "Unclear dosage instructions",
    RejectionReason.PATIENT_INFORMATION_MISMATCH: "Patient information mismatch",
    RejectionReason.DRUG_INTERACTION_CONCERNS: "Drug interaction concerns",
    RejectionReason.INVALID_PRESCRIPTION_FORMAT: "Invalid prescription format",
    RejectionReason.EXPIRED_PRESCRIPTION: "Expired prescription",
    RejectionReason.INSURANCE_COVERAGE_ISSUES: "Insurance coverage issues",
    RejectionReason.OTHER: "Other (specify in notes)",
}


class QueueFilters(BaseModel):
    """Pharmacist queue filters."""

    medication_type: Optional[str] = None
    urgency: Optional[str] = None
    patient_name: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class QueueSort(BaseModel):
    """Pharmacist queue sort order."""

    field: str = "created_at"
    direction: str = "asc"  # asc, desc
