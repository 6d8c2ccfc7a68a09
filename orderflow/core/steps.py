"""
Order workflow steps.

Each step is an async function of the order and the read-only outputs of
the steps before it, returning its own output. Collaborators come from the
implicit execution context. Steps signal failure by raising:

- validate_order   -> ValidationError (fatal)
- process_payment  -> PaymentError (fatal)
- generate_receipt -> StorageError (retried, then fatal to the execution)
- notify_customer  -> NotificationError (retried, then fatal to the execution)
"""

import json
from datetime import UTC, datetime
from typing import Any, Dict, Mapping

from loguru import logger

from orderflow.context import get_context
from orderflow.core.exceptions import PaymentError, ValidationError
from orderflow.sources import MAX_ITEMS_PER_ORDER, NOTIFICATION_API_KEY
from orderflow.storage.schemas import (
    NotificationEvent,
    Order,
    OrderStatus,
    ReceiptArtifact,
)

StepOutputs = Mapping[str, Any]


async def validate_order(order: Order, results: StepOutputs) -> Dict[str, Any]:
    """Check the order is processable."""
    ctx = get_context()
    max_items = await ctx.config_source.get_int(MAX_ITEMS_PER_ORDER)

    reasons = []
    if not order.customer_name.strip():
        reasons.append("customer name is required")
    if not order.items:
        reasons.append("order has no items")
    if any(not item.strip() for item in order.items):
        reasons.append("item identifiers must not be blank")
    if len(order.items) > max_items:
        reasons.append(f"order has {len(order.items)} items, at most {max_items} allowed")
    if order.total < 0:
        reasons.append("total must not be negative")

    if reasons:
        raise ValidationError(f"Order {order.order_id} is invalid", reasons)

    return {"validated": True, "reasons": []}


async def process_payment(order: Order, results: StepOutputs) -> Dict[str, Any]:
    """Charge the order total. Declines and service errors are not retried."""
    ctx = get_context()

    try:
        payment = await ctx.payments.charge(order)
    except PaymentError:
        raise
    except Exception as e:
        raise PaymentError(f"Payment service error: {e}") from e

    if not payment.approved:
        raise PaymentError(
            f"Payment declined for order {order.order_id}",
            decline_code=payment.decline_code,
        )

    return {
        "paymentStatus": payment.status,
        "transactionId": payment.transaction_id,
        "amount": float(payment.amount),
    }


def build_receipt(order: Order, payment: Mapping[str, Any]) -> ReceiptArtifact:
    """Render the receipt document for a paid order."""
    document = {
        "orderId": order.order_id,
        "customerName": order.customer_name,
        "items": list(order.items),
        "total": float(order.total),
        "transactionId": payment.get("transactionId"),
        "paymentStatus": payment.get("paymentStatus"),
        "issuedAt": datetime.now(UTC).isoformat(),
    }
    return ReceiptArtifact(
        key=ReceiptArtifact.key_for(order.order_id),
        content=json.dumps(document, indent=2).encode("utf-8"),
        content_type="application/json",
    )


async def generate_receipt(order: Order, results: StepOutputs) -> Dict[str, Any]:
    """Write the receipt; the key is fixed per order so reruns overwrite."""
    ctx = get_context()
    artifact = build_receipt(order, results["payment"])

    await ctx.call_with_retries("generate_receipt", ctx.receipt_store.put, artifact)

    logger.debug(f"Receipt written to {artifact.key}")
    return {"receiptKey": artifact.key, "contentType": artifact.content_type}


async def notify_customer(order: Order, results: StepOutputs) -> Dict[str, Any]:
    """Publish the order-processed notification."""
    ctx = get_context()
    credential = await ctx.secret_source.get_secret(NOTIFICATION_API_KEY)

    event = NotificationEvent(
        order_id=order.order_id,
        status=OrderStatus.PROCESSED.value,
        payload={
            "customerName": order.customer_name,
            "total": float(order.total),
            "receiptKey": results["receipt"]["receiptKey"],
        },
    )
    message_id = await ctx.call_with_retries(
        "notify_customer", ctx.notifications.publish, event, credential
    )

    return {"delivered": True, "messageId": message_id}


async def complete_order(order: Order, results: StepOutputs) -> Dict[str, Any]:
    """Build the final summary record from every prior output."""
    return {
        "orderId": order.order_id,
        "status": OrderStatus.PROCESSED.value,
        "validated": results["validation"]["validated"],
        "transactionId": results["payment"]["transactionId"],
        "receiptKey": results["receipt"]["receiptKey"],
        "notificationId": results["notification"]["messageId"],
        "completedAt": datetime.now(UTC).isoformat(),
    }
