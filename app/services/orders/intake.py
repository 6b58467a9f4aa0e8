"""Order intake."""
import logging
from typing import Optional

from app.core.config import Settings
from app.core.exceptions import ValidationError
from app.db.models import Order
from app.services.ocr.image_validation import validate_image_ref
from app.services.orders.statuses import Urgency
from app.services.persistence.orders import OrderPersistenceService

logger = logging.getLogger(__name__)


class OrderIntake:
    """Creates new prescription orders."""

    def __init__(self, store: OrderPersistenceService, settings: Settings):
        self.store = store
        self.settings = settings

    async def create_order(
        self,
        image_ref: Optional[str],
        patient_profile_id: Optional[str] = None,
        patient_name: Optional[str] = None,
        urgency: str = Urgency.MEDIUM.value,
        actor_id: Optional[str] = None,
    ) -> Order:
        """
        Create an order in pending_verification with OCR pending.

        An order may be created without an image; OCR then cannot start
        until one is attached.

        Raises:
            ValidationError: Invalid image reference or urgency
        """
        if urgency not in Urgency._value2member_map_:
            raise ValidationError(
                "Urgency must be one of: high, medium, low",
                code="INVALID_URGENCY",
                detail={"urgency": urgency},
            )

        if image_ref is not None:
            image_ref = image_ref.strip()
            errors = validate_image_ref(image_ref, self.settings.max_image_bytes)
            if errors:
                raise ValidationError(
                    f"Invalid image: {', '.join(errors)}",
                    code="INVALID_IMAGE",
                    detail={"image_ref": errors},
                )

        order = await self.store.create_order(
            image_ref=image_ref or None,
            patient_profile_id=patient_profile_id,
            patient_name=patient_name.strip() if patient_name else None,
            urgency=urgency,
            actor_id=actor_id or patient_profile_id or "patient",
        )
        logger.info(
            f"[INTAKE] Created order {order.id} - patient: {patient_profile_id}, "
            f"urgency: {urgency}, image: {'yes' if order.image_ref else 'no'}"
        )
        return order
