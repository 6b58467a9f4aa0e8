"""Payment and delivery bridge.

Payment and delivery providers report back through these calls; there is no
public HTTP route for them.
"""
import logging
from enum import Enum

from app.core.exceptions import ValidationError
from app.db.models import Order
from app.services.orders.status_machine import OrderStatusMachine
from app.services.orders.statuses import OrderStatus
from app.services.persistence.orders import OrderPersistenceService

logger = logging.getLogger(__name__)


class DeliveryEvent(str, Enum):
    """Delivery provider events that move an order forward."""

    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"

    def __str__(self) -> str:
        return self.value


DELIVERY_TARGETS = {
    DeliveryEvent.OUT_FOR_DELIVERY: OrderStatus.OUT_FOR_DELIVERY,
    DeliveryEvent.DELIVERED: OrderStatus.DELIVERED,
}


class FulfillmentBridge:
    """Applies payment and delivery outcomes to orders."""

    def __init__(self, store: OrderPersistenceService):
        self.store = store
        self.status_machine = OrderStatusMachine(store)

    async def mark_payment_succeeded(self, order_id: str, payment_reference: str) -> Order:
        """Move a paid order from awaiting_payment to preparing."""
        order = await self.store.require_order(order_id)
        order = await self.status_machine.transition(
            order,
            OrderStatus.PREPARING,
            actor_id="payment",
            action="payment_succeeded",
            notes=f"Payment reference: {payment_reference}",
        )
        logger.info(f"[FULFILLMENT] Payment {payment_reference} recorded for order {order_id}")
        return order

    async def mark_delivery_event(self, order_id: str, event: DeliveryEvent) -> Order:
        """Apply a delivery event (out_for_delivery, then delivered)."""
        try:
            event = DeliveryEvent(event)
        except ValueError:
            raise ValidationError(
                f"Unknown delivery event: {event}",
                code="INVALID_DELIVERY_EVENT",
                detail={"event": [known.value for known in DeliveryEvent]},
            )
        order = await self.store.require_order(order_id)
        order = await self.status_machine.transition(
            order,
            DELIVERY_TARGETS[event],
            actor_id="delivery",
            action=f"delivery_{event.value}",
        )
        logger.info(f"[FULFILLMENT] Delivery event {event.value} recorded for order {order_id}")
        return order
