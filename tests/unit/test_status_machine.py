"""Unit tests for the order status machine."""
import pytest
from types import SimpleNamespace

from app.core.exceptions import ConflictError, ValidationError
from app.services.orders.status_machine import (
    OrderStatusMachine,
    allowed_transitions,
    can_transition,
    has_positive_cost,
    is_terminal,
    is_valid_joint_state,
)
from app.services.orders.statuses import OrderStatus


class TestTransitionGraph:
    """Test the status graph."""

    def test_forward_edges(self):
        """Test every edge of the lifecycle."""
        assert can_transition("pending_verification", "awaiting_verification")
        assert can_transition("awaiting_verification", "awaiting_payment")
        assert can_transition("awaiting_verification", "rejected")
        assert can_transition("awaiting_payment", "preparing")
        assert can_transition("preparing", "out_for_delivery")
        assert can_transition("out_for_delivery", "delivered")

    def test_no_skipping_or_going_back(self):
        """Test that statuses cannot be skipped or reversed."""
        assert not can_transition("pending_verification", "awaiting_payment")
        assert not can_transition("awaiting_payment", "awaiting_verification")
        assert not can_transition("preparing", "delivered")
        assert not can_transition("awaiting_payment", "rejected")

    def test_terminal_statuses(self):
        """Test that delivered and rejected have no outgoing edges."""
        assert is_terminal("delivered")
        assert is_terminal("rejected")
        assert not is_terminal("preparing")
        assert allowed_transitions("rejected") == frozenset()

    def test_joint_state_table(self):
        """Test which OCR states may coexist with each status."""
        assert is_valid_joint_state("pending_verification", "processing")
        assert is_valid_joint_state("pending_verification", "failed")
        assert not is_valid_joint_state("pending_verification", "completed")
        assert is_valid_joint_state("awaiting_verification", "completed")
        assert is_valid_joint_state("awaiting_verification", "pending")
        assert not is_valid_joint_state("awaiting_verification", "processing")
        assert not is_valid_joint_state("delivered", "processing")

    def test_positive_cost(self):
        """Test that only finite costs above zero count as positive."""
        assert has_positive_cost(45.5)
        assert not has_positive_cost(None)
        assert not has_positive_cost(0)
        assert not has_positive_cost(-1.0)
        assert not has_positive_cost(float("nan"))
        assert not has_positive_cost(float("inf"))


class TestTransitions:
    """Test guarded transitions against the store."""

    @pytest.mark.asyncio
    async def test_illegal_transition_leaves_record_unchanged(self, store, order_factory):
        """Test that an edge outside the graph is a ConflictError with no write."""
        order = await order_factory()
        machine = OrderStatusMachine(store)

        with pytest.raises(ConflictError) as exc_info:
            await machine.transition(
                order, OrderStatus.AWAITING_PAYMENT, actor_id="pharm-1", action="approved",
                values={"cost": 10.0},
            )

        assert exc_info.value.code == "ILLEGAL_TRANSITION"
        order = await store.require_order(order.id)
        assert order.status == "pending_verification"
        assert order.cost is None
        assert len(await store.get_audit_trail(order.id)) == 1

    @pytest.mark.asyncio
    async def test_transition_records_audit_entry(self, store, order_factory):
        """Test that a transition appends an entry with both statuses."""
        order = await order_factory()
        machine = OrderStatusMachine(store)

        order = await machine.transition(
            order, OrderStatus.AWAITING_VERIFICATION, actor_id="patient-1", action="verification_skipped"
        )

        assert order.status == "awaiting_verification"
        entry = (await store.get_audit_trail(order.id))[-1]
        assert entry.action == "verification_skipped"
        assert entry.from_status == "pending_verification"
        assert entry.to_status == "awaiting_verification"
        assert entry.actor_id == "patient-1"

    @pytest.mark.asyncio
    async def test_cannot_leave_pending_while_ocr_processing(self, store, order_factory):
        """Test the joint state guard."""
        order = await order_factory()
        await store.compare_and_set(order.id, {}, {"ocr_status": "processing"})
        order = await store.require_order(order.id)
        machine = OrderStatusMachine(store)

        with pytest.raises(ConflictError) as exc_info:
            await machine.transition(
                order, OrderStatus.AWAITING_VERIFICATION, actor_id="patient-1", action="skip"
            )

        assert exc_info.value.code == "OCR_STATE_CONFLICT"

    @pytest.mark.asyncio
    async def test_approval_requires_positive_cost(self, store, queued_order_factory):
        """Test the cost guard into awaiting_payment."""
        order = await queued_order_factory()
        machine = OrderStatusMachine(store)

        with pytest.raises(ValidationError) as exc_info:
            await machine.transition(
                order, OrderStatus.AWAITING_PAYMENT, actor_id="pharm-1", action="approved",
                values={"cost": 0},
            )

        assert exc_info.value.code == "INVALID_COST"
        assert (await store.require_order(order.id)).status == "awaiting_verification"

    @pytest.mark.asyncio
    async def test_approval_requires_complete_details(self, store, order_factory):
        """Test that approval needs name, dosage and quantity."""
        order = await order_factory()
        machine = OrderStatusMachine(store)
        order = await machine.transition(
            order, OrderStatus.AWAITING_VERIFICATION, actor_id="patient-1", action="skip"
        )

        with pytest.raises(ValidationError) as exc_info:
            await machine.transition(
                order, OrderStatus.AWAITING_PAYMENT, actor_id="pharm-1", action="approved",
                values={"cost": 12.5},
            )

        assert exc_info.value.code == "INCOMPLETE_MEDICATION_DETAILS"

    @pytest.mark.asyncio
    async def test_rejection_requires_known_reason(self, store, queued_order_factory):
        """Test the rejection reason guard."""
        order = await queued_order_factory()
        machine = OrderStatusMachine(store)

        with pytest.raises(ValidationError) as exc_info:
            await machine.transition(
                order, OrderStatus.REJECTED, actor_id="pharm-1", action="rejected",
                rejection_reason="looks_wrong",
            )

        assert exc_info.value.code == "INVALID_REJECTION_REASON"

    @pytest.mark.asyncio
    async def test_other_rejection_requires_notes(self, store, queued_order_factory):
        """Test that reason 'other' needs notes."""
        order = await queued_order_factory()
        machine = OrderStatusMachine(store)

        with pytest.raises(ValidationError) as exc_info:
            await machine.transition(
                order, OrderStatus.REJECTED, actor_id="pharm-1", action="rejected",
                rejection_reason="other", notes="  ",
            )

        assert exc_info.value.code == "NOTES_REQUIRED"

    @pytest.mark.asyncio
    async def test_preparing_requires_cost(self, store, queued_order_factory):
        """Test that an order without cost cannot be prepared."""
        order = await queued_order_factory()
        await store.compare_and_set(order.id, {}, {"status": "awaiting_payment", "cost": None})
        order = await store.require_order(order.id)
        machine = OrderStatusMachine(store)

        with pytest.raises(ConflictError) as exc_info:
            await machine.transition(
                order, OrderStatus.PREPARING, actor_id="payment", action="payment_succeeded"
            )

        assert exc_info.value.code == "MISSING_COST"

    @pytest.mark.asyncio
    async def test_stale_order_is_a_conflict(self, store, queued_order_factory):
        """Test that a concurrent change between read and write is detected."""
        order = await queued_order_factory()
        machine = OrderStatusMachine(store)
        # Snapshot of the order as a slower reader saw it before the rejection
        stale = SimpleNamespace(
            id=order.id,
            status=order.status,
            ocr_status=order.ocr_status,
            cost=None,
            medication_details=dict(order.medication_details),
        )

        await machine.transition(
            order, OrderStatus.REJECTED, actor_id="pharm-2", action="rejected",
            rejection_reason="expired_prescription",
        )
        with pytest.raises(ConflictError) as exc_info:
            await machine.transition(
                stale, OrderStatus.AWAITING_PAYMENT, actor_id="pharm-1", action="approved",
                values={"cost": 20.0},
            )

        assert exc_info.value.code == "STALE_ORDER"
        order = await store.require_order(order.id)
        assert order.status == "rejected"
        assert order.cost is None
