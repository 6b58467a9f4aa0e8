"""Order status machine: the single authority on status transitions."""
import logging
import math
from typing import Any, Dict, FrozenSet, Mapping, Optional

from app.core.exceptions import ConflictError, ValidationError
from app.db.models import Order, OrderAuditEntry, PharmacistReview, utcnow
from app.services.orders.statuses import OcrStatus, OrderStatus
from app.services.persistence.orders import OrderPersistenceService
from app.services.review.models import RejectionReason
from app.services.verification.validator import validate_medication_details

logger = logging.getLogger(__name__)


TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING_VERIFICATION: frozenset({OrderStatus.AWAITING_VERIFICATION}),
    OrderStatus.AWAITING_VERIFICATION: frozenset(
        {OrderStatus.AWAITING_PAYMENT, OrderStatus.REJECTED}
    ),
    OrderStatus.AWAITING_PAYMENT: frozenset({OrderStatus.PREPARING}),
    OrderStatus.PREPARING: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}

_SETTLED_OCR = frozenset({OcrStatus.PENDING, OcrStatus.COMPLETED, OcrStatus.FAILED})

# Which OCR states may coexist with each order status.
JOINT_STATES: Dict[OrderStatus, FrozenSet[OcrStatus]] = {
    OrderStatus.PENDING_VERIFICATION: frozenset(
        {OcrStatus.PENDING, OcrStatus.PROCESSING, OcrStatus.FAILED}
    ),
    **{status: _SETTLED_OCR for status in OrderStatus if status != OrderStatus.PENDING_VERIFICATION},
}


def allowed_transitions(source: str) -> FrozenSet[OrderStatus]:
    """Statuses reachable from source in one step."""
    return TRANSITIONS[OrderStatus(source)]


def can_transition(source: str, target: str) -> bool:
    """Check whether source -> target is an edge of the status graph."""
    return OrderStatus(target) in allowed_transitions(source)


def is_valid_joint_state(status: str, ocr_status: str) -> bool:
    """Check a (status, ocr_status) pair against the joint state table."""
    return OcrStatus(ocr_status) in JOINT_STATES[OrderStatus(status)]


def is_terminal(status: str) -> bool:
    return not allowed_transitions(status)


def has_positive_cost(cost: Optional[float]) -> bool:
    """A finite cost greater than zero; NaN and infinity never qualify."""
    return cost is not None and math.isfinite(cost) and cost > 0


class OrderStatusMachine:
    """Guards and performs order status transitions."""

    def __init__(self, store: OrderPersistenceService):
        self.store = store

    def validate_transition(
        self,
        order: Order,
        target: OrderStatus,
        values: Optional[Mapping[str, Any]] = None,
        rejection_reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        """
        Check that order may move to target with the given field updates.

        Guards run against the prospective record (current fields overlaid
        with values). Raises ConflictError or ValidationError; never writes.
        """
        values = values or {}
        source = OrderStatus(order.status)

        if target not in TRANSITIONS[source]:
            raise ConflictError(
                f"Cannot transition order from {source.value} to {target.value}",
                code="ILLEGAL_TRANSITION",
                detail={"order_id": order.id, "status": source.value, "requested": target.value},
            )

        ocr_status = values.get("ocr_status", order.ocr_status)
        if not is_valid_joint_state(target.value, ocr_status):
            raise ConflictError(
                f"Order cannot be {target.value} while OCR is {ocr_status}",
                code="OCR_STATE_CONFLICT",
                detail={"order_id": order.id, "ocr_status": ocr_status},
            )

        if target == OrderStatus.AWAITING_PAYMENT:
            cost = values.get("cost", order.cost)
            if not has_positive_cost(cost):
                raise ValidationError(
                    "Cost must be greater than 0 to approve an order",
                    code="INVALID_COST",
                    detail={"cost": "Cost must be greater than 0"},
                )
            details = values.get("medication_details", order.medication_details)
            errors = validate_medication_details(details or {})
            if details is None or errors:
                raise ValidationError(
                    "Medication details must be complete before approval",
                    code="INCOMPLETE_MEDICATION_DETAILS",
                    detail=errors,
                )

        elif target == OrderStatus.REJECTED:
            if not RejectionReason.is_valid(rejection_reason):
                raise ValidationError(
                    "A rejection reason from the allowed list is required",
                    code="INVALID_REJECTION_REASON",
                    detail={"reason": [reason.value for reason in RejectionReason]},
                )
            if rejection_reason == RejectionReason.OTHER.value and not (notes or "").strip():
                raise ValidationError(
                    "Notes are required when the rejection reason is 'other'",
                    code="NOTES_REQUIRED",
                    detail={"notes": "Please specify the rejection reason in notes"},
                )

        elif target == OrderStatus.PREPARING:
            cost = values.get("cost", order.cost)
            if not has_positive_cost(cost):
                raise ConflictError(
                    "Order has no positive cost and cannot be prepared",
                    code="MISSING_COST",
                    detail={"order_id": order.id},
                )

    async def transition(
        self,
        order: Order,
        target: OrderStatus,
        actor_id: str,
        action: str,
        values: Optional[Dict[str, Any]] = None,
        expected: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
        review: Optional[PharmacistReview] = None,
    ) -> Order:
        """
        Validate and perform a guarded transition of order to target.

        The write is a compare-and-swap keyed on the status the order was
        read with (plus any extra expected fields), so a concurrent change
        between read and write surfaces as ConflictError.
        """
        values = dict(values or {})
        self.validate_transition(
            order, target, values, rejection_reason=rejection_reason, notes=notes
        )

        source = order.status
        now = utcnow()
        values["status"] = target.value
        values.setdefault("updated_at", now)
        guard = {"status": source, **(expected or {})}

        audit = OrderAuditEntry(
            actor_id=actor_id,
            action=action,
            notes=notes,
            from_status=source,
            to_status=target.value,
            timestamp=now,
        )
        updated = await self.store.compare_and_set(
            order.id, guard, values, audit=audit, review=review
        )
        if not updated:
            raise ConflictError(
                f"Order {order.id} was modified concurrently; reload and retry",
                code="STALE_ORDER",
                detail={"order_id": order.id, "status": source},
            )

        logger.info(
            f"[STATUS] Order {order.id}: {source} -> {target.value} ({action} by {actor_id})"
        )
        return await self.store.require_order(order.id)
