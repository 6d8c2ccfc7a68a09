"""Tests for the individual order workflow steps."""

import json
from contextlib import contextmanager
from decimal import Decimal
from types import MappingProxyType
from unittest.mock import AsyncMock

import pytest

from orderflow.context import ExecutionContext, get_context, has_context, reset_context, set_context
from orderflow.core.exceptions import (
    NotificationError,
    PaymentError,
    StorageError,
    ValidationError,
)
from orderflow.core.steps import (
    complete_order,
    generate_receipt,
    notify_customer,
    process_payment,
    validate_order,
)
from orderflow.payments import PaymentResult

PAID = {
    "validation": {"validated": True, "reasons": []},
    "payment": {"paymentStatus": "SUCCESS", "transactionId": "txn_1", "amount": 49.99},
}


@contextmanager
def running_in(app, **kwargs):
    """Run with an execution context over the app's collaborators."""
    ctx = ExecutionContext(
        execution_id="exec_test",
        order_id="order-1",
        collaborators=app.collaborators,
        retry_delay=0,
        **kwargs,
    )
    token = set_context(ctx)
    try:
        yield ctx
    finally:
        reset_context(token)


class TestExecutionContext:
    """Tests for implicit context access."""

    def test_no_context_outside_execution(self):
        """Test get_context fails outside an execution."""
        assert has_context() is False
        with pytest.raises(RuntimeError):
            get_context()

    def test_context_available_inside(self, app):
        """Test the context is reachable while set and cleared afterwards."""
        with running_in(app) as ctx:
            assert get_context() is ctx
            assert ctx.order_store is app.stores.orders
        assert has_context() is False


class TestValidateOrder:
    """Tests for validate_order."""

    @pytest.mark.asyncio
    async def test_valid_order(self, app, make_order):
        """Test a well-formed order passes."""
        with running_in(app):
            result = await validate_order(make_order(), MappingProxyType({}))
        assert result == {"validated": True, "reasons": []}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"customer_name": "  "},
            {"items": []},
            {"items": ["widget", ""]},
            {"total": Decimal("-1")},
        ],
    )
    async def test_invalid_orders(self, app, make_order, overrides):
        """Test each rule rejects the order with a reason."""
        with running_in(app):
            with pytest.raises(ValidationError) as exc_info:
                await validate_order(make_order(**overrides), MappingProxyType({}))
        assert exc_info.value.reasons

    @pytest.mark.asyncio
    async def test_item_limit_comes_from_config_source(self, build_app, make_order):
        """Test max-items-per-order is read through the config source."""
        app = build_app(max_items=2)
        with running_in(app):
            await validate_order(make_order(items=["a", "b"]), MappingProxyType({}))
            with pytest.raises(ValidationError) as exc_info:
                await validate_order(make_order(items=["a", "b", "c"]), MappingProxyType({}))
        assert "at most 2" in exc_info.value.reasons[0]

    @pytest.mark.asyncio
    async def test_collects_all_reasons(self, app, make_order):
        """Test every failing rule is reported."""
        with running_in(app):
            with pytest.raises(ValidationError) as exc_info:
                await validate_order(
                    make_order(customer_name="", items=[], total=Decimal("-5")),
                    MappingProxyType({}),
                )
        assert len(exc_info.value.reasons) == 3


class TestProcessPayment:
    """Tests for process_payment."""

    @pytest.mark.asyncio
    async def test_approved(self, app, make_order):
        """Test an approved charge yields the payment output."""
        with running_in(app):
            result = await process_payment(make_order(), MappingProxyType({}))
        assert result["paymentStatus"] == "SUCCESS"
        assert result["transactionId"].startswith("txn_")
        assert result["amount"] == 49.99

    @pytest.mark.asyncio
    async def test_declined(self, app, make_order, monkeypatch):
        """Test a decline is a payment error carrying the decline code."""
        monkeypatch.setattr(
            app.collaborators.payments,
            "charge",
            AsyncMock(return_value=PaymentResult(approved=False, decline_code="card_declined")),
        )
        with running_in(app):
            with pytest.raises(PaymentError) as exc_info:
                await process_payment(make_order(), MappingProxyType({}))
        assert exc_info.value.decline_code == "card_declined"

    @pytest.mark.asyncio
    async def test_gateway_error_is_not_retried(self, app, make_order, monkeypatch):
        """Test a gateway failure becomes a single payment error."""
        charge = AsyncMock(side_effect=ConnectionError("gateway down"))
        monkeypatch.setattr(app.collaborators.payments, "charge", charge)
        with running_in(app):
            with pytest.raises(PaymentError):
                await process_payment(make_order(), MappingProxyType({}))
        charge.assert_awaited_once()


class TestGenerateReceipt:
    """Tests for generate_receipt."""

    @pytest.mark.asyncio
    async def test_writes_receipt(self, app, make_order):
        """Test the receipt is written under the order's key."""
        with running_in(app):
            result = await generate_receipt(make_order(), MappingProxyType(PAID))

        assert result == {"receiptKey": "receipts/order-1.json", "contentType": "application/json"}
        artifact = await app.stores.receipts.get("receipts/order-1.json")
        document = json.loads(artifact.content)
        assert document["orderId"] == "order-1"
        assert document["transactionId"] == "txn_1"
        assert document["items"] == ["widget", "gadget"]

    @pytest.mark.asyncio
    async def test_rerun_overwrites(self, app, make_order):
        """Test generating twice leaves a single artifact."""
        with running_in(app):
            await generate_receipt(make_order(), MappingProxyType(PAID))
            await generate_receipt(make_order(), MappingProxyType(PAID))
        assert await app.stores.receipts.list_keys() == ["receipts/order-1.json"]

    @pytest.mark.asyncio
    async def test_storage_errors_are_retried(self, app, make_order, monkeypatch):
        """Test a transient storage failure is retried."""
        attempts = []
        real_put = app.stores.receipts.put

        async def flaky_put(artifact):
            attempts.append(artifact.key)
            if len(attempts) == 1:
                raise StorageError("bucket unavailable")
            await real_put(artifact)

        monkeypatch.setattr(app.collaborators.receipt_store, "put", flaky_put)
        with running_in(app):
            await generate_receipt(make_order(), MappingProxyType(PAID))

        assert len(attempts) == 2
        assert await app.stores.receipts.list_keys() == ["receipts/order-1.json"]


class TestNotifyCustomer:
    """Tests for notify_customer."""

    @pytest.mark.asyncio
    async def test_publishes_processed_event(self, app, make_order):
        """Test the notification carries the order status and receipt key."""
        outputs = dict(PAID, receipt={"receiptKey": "receipts/order-1.json"})
        with running_in(app):
            result = await notify_customer(make_order(), MappingProxyType(outputs))

        assert result["delivered"] is True
        [event] = app.collaborators.notifications.published
        assert event.order_id == "order-1"
        assert event.status == "PROCESSED"
        assert event.payload["receiptKey"] == "receipts/order-1.json"

    @pytest.mark.asyncio
    async def test_empty_credential_fails_after_retries(self, build_app, make_order):
        """Test publish failures are retried and then surface."""
        app = build_app(api_key="")
        outputs = dict(PAID, receipt={"receiptKey": "receipts/order-1.json"})
        retries = AsyncMock()
        with running_in(app, max_retries=2, on_retry=retries):
            with pytest.raises(NotificationError):
                await notify_customer(make_order(), MappingProxyType(outputs))
        assert retries.await_count == 2


class TestCompleteOrder:
    """Tests for complete_order."""

    @pytest.mark.asyncio
    async def test_summary_uses_all_outputs(self, app, make_order):
        """Test the summary record draws on every prior output."""
        outputs = dict(
            PAID,
            receipt={"receiptKey": "receipts/order-1.json"},
            notification={"delivered": True, "messageId": "msg_1"},
        )
        with running_in(app):
            summary = await complete_order(make_order(), MappingProxyType(outputs))

        assert summary["orderId"] == "order-1"
        assert summary["status"] == "PROCESSED"
        assert summary["transactionId"] == "txn_1"
        assert summary["receiptKey"] == "receipts/order-1.json"
        assert summary["notificationId"] == "msg_1"
