"""Database models."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, JSON, Float
from sqlalchemy.orm import declarative_base, relationship

from app.services.orders.statuses import OrderStatus, OcrStatus, Urgency

Base = declarative_base()


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_order_id() -> str:
    return uuid.uuid4().hex


class Order(Base):
    """Prescription order model."""

    __tablename__ = "orders"

    id = Column(String(32), primary_key=True, default=new_order_id)
    patient_profile_id = Column(String, index=True, nullable=True)
    patient_name = Column(String, nullable=True)
    urgency = Column(String, default=Urgency.MEDIUM.value, nullable=False)
    status = Column(
        String, default=OrderStatus.PENDING_VERIFICATION.value, nullable=False, index=True
    )
    image_ref = Column(Text, nullable=True)

    # OCR job
    ocr_status = Column(String, default=OcrStatus.PENDING.value, nullable=False)
    extracted_text = Column(Text, nullable=True)
    ocr_confidence = Column(Float, nullable=True)
    ocr_processed_at = Column(DateTime, nullable=True)
    ocr_error = Column(Text, nullable=True)
    ocr_source = Column(String, nullable=True)  # provider, manual

    # Verification gate
    medication_details = Column(JSON, nullable=True)
    medication_type = Column(String, nullable=True, index=True)
    verification = Column(JSON, nullable=True)
    verified_at = Column(DateTime, nullable=True)

    # Pharmacist review
    review_decision = Column(String, nullable=True)  # approved, rejected
    cost = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    reviews = relationship(
        "PharmacistReview",
        back_populates="order",
        order_by="PharmacistReview.id",
        cascade="all, delete-orphan",
    )
    audit_entries = relationship(
        "OrderAuditEntry",
        back_populates="order",
        order_by="OrderAuditEntry.id",
        cascade="all, delete-orphan",
    )


class PharmacistReview(Base):
    """Pharmacist review entry (approved, rejected or edited). Append-only."""

    __tablename__ = "pharmacist_reviews"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(32), ForeignKey("orders.id"), nullable=False, index=True)
    reviewer_id = Column(String, nullable=False)
    decision = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    reason = Column(String, nullable=True)
    cost = Column(Float, nullable=True)
    reviewed_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="reviews")


class OrderAuditEntry(Base):
    """Audit trail entry. Append-only."""

    __tablename__ = "order_audit_entries"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(32), ForeignKey("orders.id"), nullable=False, index=True)
    actor_id = Column(String, nullable=False)
    action = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    from_status = Column(String, nullable=True)
    to_status = Column(String, nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="audit_entries")
