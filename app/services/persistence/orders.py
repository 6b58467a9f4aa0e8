"""Order persistence service (the order store)."""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import NotFoundError
from app.db.models import Order, OrderAuditEntry, PharmacistReview, utcnow
from app.services.orders.statuses import OcrStatus, OrderStatus, Urgency

logger = logging.getLogger(__name__)

# Expected value for compare_and_set: the field must be set (IS NOT NULL).
NOT_NULL = object()


class OrderPersistenceService:
    """Service for persisting prescription orders.

    All mutations of an existing order go through ``compare_and_set``, a
    single-row conditional UPDATE. Audit and review rows passed along are
    written in the same transaction, and only when the update matched.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_order(
        self,
        image_ref: Optional[str],
        patient_profile_id: Optional[str] = None,
        patient_name: Optional[str] = None,
        urgency: str = Urgency.MEDIUM.value,
        actor_id: str = "system",
    ) -> Order:
        """Create a new order in pending_verification."""
        now = utcnow()
        order = Order(
            patient_profile_id=patient_profile_id,
            patient_name=patient_name,
            urgency=urgency,
            status=OrderStatus.PENDING_VERIFICATION.value,
            image_ref=image_ref,
            ocr_status=OcrStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        self.db.add(order)
        await self.db.flush()
        self.db.add(
            OrderAuditEntry(
                order_id=order.id,
                actor_id=actor_id,
                action="created",
                to_status=order.status,
                timestamp=now,
            )
        )
        await self.db.commit()
        return await self.require_order(order.id)

    async def get_order_by_id(self, order_id: str) -> Optional[Order]:
        """Get a fresh copy of an order with its reviews."""
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.reviews))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def require_order(self, order_id: str) -> Order:
        """Get an order or raise NotFoundError."""
        order = await self.get_order_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", code="ORDER_NOT_FOUND")
        return order

    async def compare_and_set(
        self,
        order_id: str,
        expected: Dict[str, Any],
        values: Dict[str, Any],
        audit: Optional[OrderAuditEntry] = None,
        review: Optional[PharmacistReview] = None,
    ) -> bool:
        """
        Atomically update an order if every expected field still holds.

        Args:
            order_id: Order to update
            expected: Field -> value the row must currently have (None means IS NULL,
                NOT_NULL means IS NOT NULL)
            values: Field -> new value
            audit: Audit entry appended when the update succeeds
            review: Review entry appended when the update succeeds

        Returns:
            True if the row matched and was updated, False otherwise
        """
        conditions = [Order.id == order_id]
        for field, value in expected.items():
            column = getattr(Order, field)
            if value is None:
                conditions.append(column.is_(None))
            elif value is NOT_NULL:
                conditions.append(column.is_not(None))
            else:
                conditions.append(column == value)

        values = dict(values)
        values.setdefault("updated_at", utcnow())

        result = await self.db.execute(
            update(Order)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Nothing matched; end the transaction without expiring loaded orders
            await self.db.commit()
            logger.info(
                f"[ORDER STORE] Conditional update missed - order: {order_id}, expected: {expected}"
            )
            return False

        for row in (audit, review):
            if row is not None:
                row.order_id = order_id
                self.db.add(row)
        await self.db.commit()
        return True

    async def get_audit_trail(self, order_id: str) -> List[OrderAuditEntry]:
        """Get the audit trail of an order, oldest first."""
        await self.require_order(order_id)
        result = await self.db.execute(
            select(OrderAuditEntry)
            .where(OrderAuditEntry.order_id == order_id)
            .order_by(OrderAuditEntry.id)
        )
        return list(result.scalars().all())

    async def search_orders(
        self,
        conditions: Sequence[Any],
        order_by: Sequence[Any],
        offset: int,
        limit: int,
    ) -> Tuple[List[Order], int]:
        """Get one page of orders matching conditions plus the total match count."""
        total = await self.db.scalar(
            select(func.count()).select_from(Order).where(*conditions)
        )
        result = await self.db.execute(
            select(Order)
            .where(*conditions)
            .options(selectinload(Order.reviews))
            .order_by(*order_by)
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), int(total or 0)
