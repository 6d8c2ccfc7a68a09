"""Tests for order submission and lookup."""

import json
import uuid
from decimal import Decimal

import pytest

from orderflow.core.exceptions import NotFoundError, OrderNotFoundError, ValidationError
from orderflow.service import OrderService
from orderflow.storage.schemas import OrderStatus


class TestSubmitOrder:
    """Tests for OrderService.submit_order."""

    @pytest.mark.asyncio
    async def test_persists_pending_and_enqueues(self, app):
        """Test a submission is stored as PENDING and its record is queued."""
        order_id = await app.service.submit_order(
            {"customerName": "Alice", "items": ["widget", "gadget"], "total": 49.99}
        )

        uuid.UUID(order_id)
        stored = await app.stores.orders.get(order_id)
        assert stored.status == OrderStatus.PENDING
        assert stored.total == Decimal("49.99")

        [message] = await app.queue.receive(10)
        assert json.loads(message.body) == stored.to_dict()

    @pytest.mark.asyncio
    async def test_each_submission_gets_new_id(self, app):
        """Test order ids are unique per submission."""
        payload = {"customerName": "Alice", "items": ["a"], "total": 1}
        first = await app.service.submit_order(payload)
        second = await app.service.submit_order(payload)
        assert first != second

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"items": ["a"], "total": 1},
            {"customerName": "Alice", "items": "widget", "total": 1},
            {"customerName": "Alice", "items": ["a"], "total": -1},
            {"customerName": "Alice", "items": ["a"], "total": "lots"},
        ],
    )
    async def test_rejects_malformed_payloads(self, app, payload):
        """Test malformed payloads are rejected before anything is stored."""
        with pytest.raises(ValidationError) as exc_info:
            await app.service.submit_order(payload)

        assert exc_info.value.reasons
        assert await app.stores.orders.list_orders() == []
        assert (await app.queue.stats()).visible == 0


class TestFetchOrder:
    """Tests for OrderService.fetch_order."""

    @pytest.mark.asyncio
    async def test_returns_original_fields(self, app):
        """Test fetch returns the submitted fields and the same id."""
        order_id = await app.service.submit_order(
            {"customerName": "Alice", "items": ["widget", "gadget"], "total": 49.99}
        )

        record = await app.service.fetch_order_record(order_id)
        assert record["orderId"] == order_id
        assert record["customerName"] == "Alice"
        assert record["items"] == ["widget", "gadget"]
        assert record["total"] == 49.99

    @pytest.mark.asyncio
    async def test_missing_order(self, app):
        """Test a missing order raises OrderNotFoundError."""
        with pytest.raises(OrderNotFoundError) as exc_info:
            await app.service.fetch_order("missing")
        assert exc_info.value.order_id == "missing"
        assert isinstance(exc_info.value, NotFoundError)


class TestAliceScenario:
    """End-to-end: submit, process, fetch."""

    @pytest.mark.asyncio
    async def test_alice(self, app):
        """Test the documented submit/process/fetch walk-through."""
        order_id = await app.service.submit_order(
            {"customerName": "Alice", "items": ["widget", "gadget"], "total": 49.99}
        )

        result = await app.consumer.process_batch()
        assert result.summary() == {
            "processed": 1,
            "results": [{"orderId": order_id, "status": "PROCESSED"}],
        }

        order = await app.service.fetch_order(order_id)
        assert order.order_id == order_id
        assert order.customer_name == "Alice"
        assert order.items == ["widget", "gadget"]
        assert order.total == Decimal("49.99")
        assert order.status == OrderStatus.PROCESSED

    @pytest.mark.asyncio
    async def test_service_without_app(self):
        """Test the service only needs a store and a queue."""
        from orderflow.messaging.queue import InMemoryWorkQueue
        from orderflow.storage.memory import InMemoryOrderStore

        service = OrderService(InMemoryOrderStore(), InMemoryWorkQueue())
        order_id = await service.submit_order({"customerName": "A", "items": ["x"], "total": 0})
        assert (await service.fetch_order(order_id)).total == Decimal("0")
