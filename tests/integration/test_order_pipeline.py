"""
Integration tests for the order pipeline.

Runs submission, queue delivery, the workflow and lookup end to end against
the file backend, where every adapter shares one directory.
"""

from decimal import Decimal

import pytest

from orderflow.app import create_app
from orderflow.config import OrderFlowConfig
from orderflow.core.exceptions import StorageError
from orderflow.engine.events import EventType
from orderflow.messaging.notifications import InMemoryNotificationChannel
from orderflow.sources import NOTIFICATION_API_KEY, StaticSecretSource
from orderflow.storage.schemas import ExecutionOutcome, FailureReason, OrderStatus, WorkflowState


@pytest.fixture
def file_app(tmp_path):
    def _build():
        return create_app(
            OrderFlowConfig(storage_backend="file", storage_path=str(tmp_path), retry_delay=0),
            notifications=InMemoryNotificationChannel(),
            secret_source=StaticSecretSource({NOTIFICATION_API_KEY: "integration-key"}),
        )

    return _build


class TestOrderPipeline:
    """Submit, process and fetch against durable storage."""

    @pytest.mark.asyncio
    async def test_alice_end_to_end(self, file_app):
        """Test an order flows from submission to PROCESSED with a receipt."""
        app = file_app()
        order_id = await app.service.submit_order(
            {"customerName": "Alice", "items": ["widget", "gadget"], "total": 49.99}
        )

        result = await app.consumer.drain()
        assert result.summary()["results"] == [{"orderId": order_id, "status": "PROCESSED"}]

        # A fresh app over the same directory sees everything
        reopened = file_app()
        order = await reopened.service.fetch_order(order_id)
        assert order.customer_name == "Alice"
        assert order.items == ["widget", "gadget"]
        assert order.total == Decimal("49.99")
        assert order.status == OrderStatus.PROCESSED

        receipt = await reopened.stores.receipts.get(f"receipts/{order_id}.json")
        assert receipt is not None

        [execution] = await reopened.stores.executions.list_executions(order_id=order_id)
        assert execution.outcome == ExecutionOutcome.SUCCEEDED
        events = await reopened.stores.executions.get_events(execution.execution_id)
        assert events[0].type == EventType.EXECUTION_STARTED
        assert events[-1].type == EventType.EXECUTION_COMPLETED

        assert (await reopened.queue.stats()).visible == 0

    @pytest.mark.asyncio
    async def test_rejected_order_is_not_redelivered(self, file_app):
        """Test a validation failure is final and the message is removed."""
        app = file_app()
        order_id = await app.service.submit_order({"customerName": "Alice", "items": [], "total": 1})

        result = await app.consumer.drain()

        [outcome] = result.outcomes
        assert outcome.failure_reason == FailureReason.VALIDATION
        assert not outcome.redeliver
        assert (await app.service.fetch_order(order_id)).status == OrderStatus.FAILED
        stats = await app.queue.stats()
        assert (stats.visible, stats.in_flight, stats.dead_lettered) == (0, 0, 0)


class TestDeadLetterPath:
    """Receipt outages exhaust deliveries, then redrive recovers the order."""

    @pytest.mark.asyncio
    async def test_receipt_outage_then_redrive(self, file_app, monkeypatch):
        """Test three failed deliveries dead-letter the order and redrive completes it."""
        app = file_app()

        async def unavailable(artifact):
            raise StorageError("receipt bucket unavailable")

        real_put = app.collaborators.receipt_store.put
        monkeypatch.setattr(app.collaborators.receipt_store, "put", unavailable)

        order_id = await app.service.submit_order({"customerName": "Alice", "items": ["widget"], "total": 5})
        result = await app.consumer.drain()

        assert len(result) == 3
        assert all(o.failure_reason == FailureReason.RECEIPT for o in result.outcomes)
        assert all(o.redeliver for o in result.outcomes)
        assert (await app.queue.stats()).dead_lettered == 1
        assert (await app.service.fetch_order(order_id)).status == OrderStatus.FAILED

        monkeypatch.setattr(app.collaborators.receipt_store, "put", real_put)
        assert await app.queue.redrive_dead_letters() == 1

        result = await app.consumer.drain()

        assert result.summary()["results"] == [{"orderId": order_id, "status": "PROCESSED"}]
        assert (await app.service.fetch_order(order_id)).status == OrderStatus.PROCESSED
        executions = await app.stores.executions.list_executions(order_id=order_id)
        assert len(executions) == 4


class TestDefaultWiring:
    """An app built from plain config completes orders without extra setup."""

    @pytest.mark.asyncio
    async def test_alice_completes_with_default_adapters(self):
        """Test the default secret lets the notify step succeed."""
        app = create_app(OrderFlowConfig(retry_delay=0))
        order_id = await app.service.submit_order(
            {"customerName": "Alice", "items": ["widget", "gadget"], "total": 49.99}
        )

        result = await app.consumer.drain()

        assert result.summary()["results"] == [{"orderId": order_id, "status": "PROCESSED"}]
        [execution] = await app.stores.executions.list_executions(order_id=order_id)
        assert execution.outcome == ExecutionOutcome.SUCCEEDED
        assert execution.state == WorkflowState.COMPLETE
        assert execution.failure_reason is None
        assert execution.outputs["notification"]["delivered"] is True
