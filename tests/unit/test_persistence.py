"""Unit tests for the order persistence service."""
import pytest
from datetime import datetime

from app.core.exceptions import NotFoundError
from app.db.models import Order, OrderAuditEntry
from app.services.persistence.orders import NOT_NULL, OrderPersistenceService
from tests.helpers import TEST_IMAGE_URL


class TestOrderCreation:
    """Test creating orders."""

    @pytest.mark.asyncio
    async def test_create_order(self, test_db):
        """Test creating a new order record."""
        service = OrderPersistenceService(test_db)

        order = await service.create_order(
            image_ref=TEST_IMAGE_URL,
            patient_profile_id="patient-1",
            patient_name="John Doe",
            urgency="high",
        )

        assert order is not None
        assert len(order.id) == 32
        assert order.status == "pending_verification"
        assert order.ocr_status == "pending"
        assert order.image_ref == TEST_IMAGE_URL
        assert order.urgency == "high"
        assert order.review_decision is None
        assert isinstance(order.created_at, datetime)

    @pytest.mark.asyncio
    async def test_create_order_appends_created_audit_entry(self, test_db):
        """Test that creation is recorded in the audit trail."""
        service = OrderPersistenceService(test_db)

        order = await service.create_order(image_ref=TEST_IMAGE_URL, actor_id="patient-1")
        trail = await service.get_audit_trail(order.id)

        assert len(trail) == 1
        assert trail[0].action == "created"
        assert trail[0].actor_id == "patient-1"
        assert trail[0].to_status == "pending_verification"

    @pytest.mark.asyncio
    async def test_order_ids_are_unique(self, test_db):
        """Test that each order gets its own opaque id."""
        service = OrderPersistenceService(test_db)

        order1 = await service.create_order(image_ref=TEST_IMAGE_URL)
        order2 = await service.create_order(image_ref=TEST_IMAGE_URL)

        assert order1.id != order2.id


class TestOrderLookup:
    """Test reading orders."""

    @pytest.mark.asyncio
    async def test_get_order_by_id(self, test_db):
        """Test retrieving an order by id."""
        service = OrderPersistenceService(test_db)
        created = await service.create_order(image_ref=TEST_IMAGE_URL)

        order = await service.get_order_by_id(created.id)

        assert order is not None
        assert order.id == created.id
        assert order.reviews == []

    @pytest.mark.asyncio
    async def test_get_unknown_order_returns_none(self, test_db):
        """Test that an unknown id yields None."""
        service = OrderPersistenceService(test_db)

        assert await service.get_order_by_id("does-not-exist") is None

    @pytest.mark.asyncio
    async def test_require_unknown_order_raises(self, test_db):
        """Test that require_order raises NotFoundError."""
        service = OrderPersistenceService(test_db)

        with pytest.raises(NotFoundError) as exc_info:
            await service.require_order("does-not-exist")

        assert exc_info.value.code == "ORDER_NOT_FOUND"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_audit_trail_of_unknown_order_raises(self, test_db):
        """Test that the audit trail of an unknown order is a NotFoundError."""
        service = OrderPersistenceService(test_db)

        with pytest.raises(NotFoundError):
            await service.get_audit_trail("does-not-exist")


class TestCompareAndSet:
    """Test the single-row conditional update."""

    @pytest.mark.asyncio
    async def test_update_when_expected_matches(self, test_db):
        """Test that a matching expectation updates the row."""
        service = OrderPersistenceService(test_db)
        order = await service.create_order(image_ref=TEST_IMAGE_URL)

        updated = await service.compare_and_set(
            order.id,
            expected={"ocr_status": "pending"},
            values={"ocr_status": "processing"},
        )

        assert updated is True
        order = await service.require_order(order.id)
        assert order.ocr_status == "processing"

    @pytest.mark.asyncio
    async def test_no_update_when_expected_differs(self, test_db):
        """Test that a stale expectation leaves the row unchanged."""
        service = OrderPersistenceService(test_db)
        order = await service.create_order(image_ref=TEST_IMAGE_URL)

        updated = await service.compare_and_set(
            order.id,
            expected={"ocr_status": "processing"},
            values={"ocr_status": "completed"},
        )

        assert updated is False
        order = await service.require_order(order.id)
        assert order.ocr_status == "pending"

    @pytest.mark.asyncio
    async def test_none_expectation_means_is_null(self, test_db):
        """Test that expecting None matches only unset columns."""
        service = OrderPersistenceService(test_db)
        order = await service.create_order(image_ref=TEST_IMAGE_URL)

        first = await service.compare_and_set(
            order.id, expected={"review_decision": None}, values={"review_decision": "approved"}
        )
        second = await service.compare_and_set(
            order.id, expected={"review_decision": None}, values={"review_decision": "rejected"}
        )

        assert first is True
        assert second is False
        order = await service.require_order(order.id)
        assert order.review_decision == "approved"

    @pytest.mark.asyncio
    async def test_not_null_expectation(self, test_db):
        """Test that expecting NOT_NULL matches only set columns."""
        service = OrderPersistenceService(test_db)
        order = await service.create_order(image_ref=TEST_IMAGE_URL)

        unset = await service.compare_and_set(
            order.id, expected={"verified_at": NOT_NULL}, values={"cost": 10.0}
        )
        await service.compare_and_set(order.id, {}, {"verified_at": datetime(2026, 3, 1, 9, 0)})
        matched = await service.compare_and_set(
            order.id, expected={"verified_at": NOT_NULL}, values={"cost": 12.0}
        )

        assert unset is False
        assert matched is True
        assert (await service.require_order(order.id)).cost == 12.0

    @pytest.mark.asyncio
    async def test_audit_entry_written_only_on_success(self, test_db):
        """Test that audit rows are appended only when the update matched."""
        service = OrderPersistenceService(test_db)
        order = await service.create_order(image_ref=TEST_IMAGE_URL)

        await service.compare_and_set(
            order.id,
            expected={"ocr_status": "failed"},
            values={"ocr_status": "processing"},
            audit=OrderAuditEntry(actor_id="test", action="missed"),
        )
        await service.compare_and_set(
            order.id,
            expected={"ocr_status": "pending"},
            values={"ocr_status": "processing"},
            audit=OrderAuditEntry(actor_id="test", action="matched"),
        )

        actions = [entry.action for entry in await service.get_audit_trail(order.id)]
        assert actions == ["created", "matched"]

    @pytest.mark.asyncio
    async def test_update_unknown_order(self, test_db):
        """Test that updating an unknown order reports no match."""
        service = OrderPersistenceService(test_db)

        updated = await service.compare_and_set(
            "does-not-exist", expected={}, values={"cost": 10.0}
        )

        assert updated is False


class TestSearchOrders:
    """Test paged order search."""

    @pytest.mark.asyncio
    async def test_search_returns_page_and_total(self, test_db):
        """Test that search returns one page and the total count."""
        service = OrderPersistenceService(test_db)
        for _ in range(5):
            await service.create_order(image_ref=TEST_IMAGE_URL)

        orders, total = await service.search_orders(
            [Order.status == "pending_verification"],
            order_by=[Order.created_at, Order.id],
            offset=2,
            limit=2,
        )

        assert total == 5
        assert len(orders) == 2

    @pytest.mark.asyncio
    async def test_search_without_matches(self, test_db):
        """Test that search with no matches returns an empty page."""
        service = OrderPersistenceService(test_db)
        await service.create_order(image_ref=TEST_IMAGE_URL)

        orders, total = await service.search_orders(
            [Order.status == "delivered"], order_by=[Order.id], offset=0, limit=10
        )

        assert orders == []
        assert total == 0
