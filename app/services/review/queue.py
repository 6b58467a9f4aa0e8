"""Pharmacist queue manager."""
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import case, func

from app.core.config import Settings
from app.core.exceptions import ConflictError, ValidationError
from app.db.models import Order, OrderAuditEntry, PharmacistReview, utcnow
from app.services.medication.catalog import MedicationCatalog
from app.services.orders.status_machine import OrderStatusMachine
from app.services.orders.statuses import OrderStatus, Urgency
from app.services.persistence.orders import NOT_NULL, OrderPersistenceService
from app.services.review.models import QueueFilters, QueueSort, ReviewDecision
from app.services.verification.validator import (
    MedicationDetailsUpdate,
    clean_medication_details,
    merge_medication_details,
)

logger = logging.getLogger(__name__)

URGENCY_RANK = case(
    {Urgency.HIGH.value: 0, Urgency.MEDIUM.value: 1, Urgency.LOW.value: 2},
    value=Order.urgency,
    else_=3,
)

SORTABLE_FIELDS = {
    "id": Order.id,
    "order_id": Order.id,
    "patient_profile_id": Order.patient_profile_id,
    "patient_name": Order.patient_name,
    "urgency": URGENCY_RANK,
    "status": Order.status,
    "ocr_status": Order.ocr_status,
    "ocr_confidence": Order.ocr_confidence,
    "ocr_processed_at": Order.ocr_processed_at,
    "medication_type": Order.medication_type,
    "verified_at": Order.verified_at,
    "cost": Order.cost,
    "created_at": Order.created_at,
    "updated_at": Order.updated_at,
}


class QueuePage(BaseModel):
    """One page of the pharmacist queue."""

    orders: List[Any]
    total_count: int
    total_pages: int
    current_page: int
    page_size: int


def _to_snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class PharmacistQueueManager:
    """Queue view and review actions for pharmacists.

    Terminal decisions are guarded by a compare-and-swap on
    ``status == awaiting_verification AND review_decision IS NULL``, so of two
    concurrent decisions on one order exactly one wins.
    """

    def __init__(
        self,
        store: OrderPersistenceService,
        settings: Settings,
        catalog: Optional[MedicationCatalog] = None,
    ):
        self.store = store
        self.settings = settings
        self.catalog = catalog
        self.status_machine = OrderStatusMachine(store)

    async def list(
        self,
        filters: Optional[QueueFilters] = None,
        sort: Optional[QueueSort] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> QueuePage:
        """
        List orders awaiting pharmacist review.

        Args:
            filters: Medication type, urgency, patient name substring, created_at range
            sort: Any scalar order field (snake_case or camelCase) and direction
            page: 1-based page number
            page_size: Orders per page (defaults to settings)

        Returns:
            QueuePage with the orders and pagination totals
        """
        filters = filters or QueueFilters()
        sort = sort or QueueSort()
        page_size = page_size or self.settings.queue_default_page_size

        errors: Dict[str, str] = {}
        if page < 1:
            errors["page"] = "Page must be at least 1"
        if not 1 <= page_size <= self.settings.queue_max_page_size:
            errors["page_size"] = (
                f"Page size must be between 1 and {self.settings.queue_max_page_size}"
            )
        sort_field = _to_snake(sort.field)
        if sort_field not in SORTABLE_FIELDS:
            errors["sort_field"] = f"Cannot sort by '{sort.field}'"
        if sort.direction.lower() not in ("asc", "desc"):
            errors["sort_direction"] = "Sort direction must be 'asc' or 'desc'"
        if filters.urgency and filters.urgency not in Urgency._value2member_map_:
            errors["urgency"] = "Urgency must be one of: high, medium, low"
        start_date = _as_naive_utc(filters.start_date)
        end_date = _as_naive_utc(filters.end_date)
        if start_date and end_date and start_date > end_date:
            errors["date_range"] = "Start date must be before end date"
        if errors:
            raise ValidationError("Invalid queue query", code="INVALID_QUEUE_QUERY", detail=errors)

        conditions = [
            Order.status == OrderStatus.AWAITING_VERIFICATION.value,
            Order.verified_at.is_not(None),
        ]
        if filters.medication_type:
            conditions.append(
                func.lower(Order.medication_type) == filters.medication_type.strip().lower()
            )
        if filters.urgency:
            conditions.append(Order.urgency == filters.urgency)
        if filters.patient_name and filters.patient_name.strip():
            conditions.append(Order.patient_name.ilike(f"%{filters.patient_name.strip()}%"))
        if start_date:
            conditions.append(Order.created_at >= start_date)
        if end_date:
            conditions.append(Order.created_at <= end_date)

        column = SORTABLE_FIELDS[sort_field]
        primary = column.desc() if sort.direction.lower() == "desc" else column.asc()

        orders, total = await self.store.search_orders(
            conditions,
            order_by=[primary, Order.id.asc()],
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        logger.info(
            f"[QUEUE] Listed {len(orders)} of {total} queued orders - page: {page}, "
            f"sort: {sort_field} {sort.direction}"
        )
        return QueuePage(
            orders=orders,
            total_count=total,
            total_pages=math.ceil(total / page_size) if total else 0,
            current_page=page,
            page_size=page_size,
        )

    async def get_order(self, order_id: str) -> Order:
        return await self.store.require_order(order_id)

    async def get_audit_trail(self, order_id: str) -> List[OrderAuditEntry]:
        return await self.store.get_audit_trail(order_id)

    async def approve(
        self,
        order_id: str,
        reviewer_id: str,
        cost: Optional[float],
        notes: Optional[str] = None,
        edited_details: Optional[MedicationDetailsUpdate] = None,
    ) -> Order:
        """Approve an order with a cost; moves it to awaiting_payment."""
        order = await self.store.require_order(order_id)
        self._check_reviewable(order)

        values: Dict[str, Any] = {
            "review_decision": ReviewDecision.APPROVED.value,
            "cost": round(cost, 2) if cost is not None else None,
        }
        if edited_details is not None and edited_details.model_fields_set:
            values.update(self._details_values(order, edited_details))

        review = PharmacistReview(
            reviewer_id=reviewer_id,
            decision=ReviewDecision.APPROVED.value,
            notes=notes,
            cost=values["cost"],
            reviewed_at=utcnow(),
        )
        order = await self.status_machine.transition(
            order,
            OrderStatus.AWAITING_PAYMENT,
            actor_id=reviewer_id,
            action=ReviewDecision.APPROVED.value,
            values=values,
            expected={"review_decision": None, "verified_at": NOT_NULL},
            notes=notes,
            review=review,
        )
        logger.info(f"[QUEUE] Order {order_id} approved by {reviewer_id} - cost: {order.cost}")
        return order

    async def reject(
        self,
        order_id: str,
        reviewer_id: str,
        reason: Optional[str],
        notes: Optional[str] = None,
    ) -> Order:
        """Reject an order for an enumerated reason; terminal."""
        order = await self.store.require_order(order_id)
        self._check_reviewable(order)

        review = PharmacistReview(
            reviewer_id=reviewer_id,
            decision=ReviewDecision.REJECTED.value,
            notes=notes,
            reason=reason,
            reviewed_at=utcnow(),
        )
        order = await self.status_machine.transition(
            order,
            OrderStatus.REJECTED,
            actor_id=reviewer_id,
            action=ReviewDecision.REJECTED.value,
            values={"review_decision": ReviewDecision.REJECTED.value},
            expected={"review_decision": None, "verified_at": NOT_NULL},
            notes=notes,
            rejection_reason=reason,
            review=review,
        )
        logger.info(f"[QUEUE] Order {order_id} rejected by {reviewer_id} - reason: {reason}")
        return order

    async def edit(
        self,
        order_id: str,
        reviewer_id: str,
        edited_details: MedicationDetailsUpdate,
        notes: Optional[str] = None,
    ) -> Order:
        """Overwrite medication details; the order stays in the queue."""
        order = await self.store.require_order(order_id)
        if order.status != OrderStatus.AWAITING_VERIFICATION.value:
            raise ConflictError(
                f"Only queued orders can be edited; order is {order.status}",
                code="NOT_IN_QUEUE",
                detail={"status": order.status},
            )
        self._check_reviewable(order)
        if not edited_details.model_fields_set:
            raise ValidationError(
                "No medication details to edit",
                code="NO_CHANGES",
                detail={"edited_details": "At least one field is required"},
            )

        now = utcnow()
        updated = await self.store.compare_and_set(
            order_id,
            expected={
                "status": OrderStatus.AWAITING_VERIFICATION.value,
                "review_decision": None,
                "verified_at": NOT_NULL,
            },
            values=self._details_values(order, edited_details),
            audit=OrderAuditEntry(
                actor_id=reviewer_id,
                action=ReviewDecision.EDITED.value,
                notes=notes,
                timestamp=now,
            ),
            review=PharmacistReview(
                reviewer_id=reviewer_id,
                decision=ReviewDecision.EDITED.value,
                notes=notes,
                reviewed_at=now,
            ),
        )
        if not updated:
            raise ConflictError(
                f"Order {order_id} was decided or modified concurrently; reload and retry",
                code="STALE_ORDER",
            )
        logger.info(f"[QUEUE] Order {order_id} edited by {reviewer_id}")
        return await self.store.require_order(order_id)

    def _check_reviewable(self, order: Order) -> None:
        if order.review_decision is not None:
            raise ConflictError(
                f"Order already has a pharmacist decision: {order.review_decision}",
                code="DECISION_EXISTS",
                detail={"decision": order.review_decision, "status": order.status},
            )
        # Only orders the patient confirmed or skipped are in the queue
        if order.verified_at is None:
            raise ConflictError(
                f"Order {order.id} has not been verified by the patient yet",
                code="NOT_VERIFIED",
                detail={"status": order.status, "ocr_status": order.ocr_status},
            )

    def _details_values(self, order: Order, update: MedicationDetailsUpdate) -> Dict[str, Any]:
        details = clean_medication_details(merge_medication_details(order.medication_details, update))
        return {
            "medication_details": details,
            "medication_type": self.catalog.medication_type(details["name"]) if self.catalog else None,
        }
