"""
Function entry points for a serverless deployment.

Each handler takes (event, context) and returns a plain dict. They are
thin adapters over OrderService, QueueConsumer, and the receipt step; the
actual behavior lives there.

    create_order_handler      HTTP POST /orders
    get_order_handler         HTTP GET /orders/{id}
    process_order_handler     queue event source (batches of up to 10)
    generate_receipt_handler  direct invocation with an order id
"""

import asyncio
import json
from typing import Any, Dict, Optional

from loguru import logger

from orderflow.app import OrderFlowApp, create_app
from orderflow.core.exceptions import OrderNotFoundError, ValidationError
from orderflow.core.steps import build_receipt
from orderflow.observability.logging import configure_logging_from_env

_app: Optional[OrderFlowApp] = None


def get_app() -> OrderFlowApp:
    """Get the process-wide app, creating it from config on first use."""
    global _app
    if _app is None:
        configure_logging_from_env()
        _app = create_app()
    return _app


def set_app(app: Optional[OrderFlowApp]) -> None:
    """Replace the process-wide app. Pass None to rebuild from config."""
    global _app
    _app = app


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def _parse_body(event: Dict[str, Any]) -> Any:
    body = event.get("body")
    if body is None:
        return {}
    if isinstance(body, (str, bytes)):
        return json.loads(body)
    return body


def create_order_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Submit an order; 201 with the order id, or 400 when invalid."""
    app = get_app()
    try:
        payload = _parse_body(event)
    except json.JSONDecodeError as e:
        return _response(400, {"message": "Request body is not valid JSON", "errors": [str(e)]})
    if not isinstance(payload, dict):
        return _response(400, {"message": "Request body must be a JSON object", "errors": []})

    try:
        order_id = asyncio.run(app.service.submit_order(payload))
    except ValidationError as e:
        return _response(400, {"message": str(e), "errors": e.reasons})

    return _response(201, {"orderId": order_id})


def get_order_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Fetch an order for GET /orders/{id}; 200 with the record, or 404."""
    app = get_app()
    path_parameters = event.get("pathParameters") or {}
    order_id = path_parameters.get("id") or path_parameters.get("orderId")
    if not order_id:
        return _response(400, {"message": "Order id is required"})

    try:
        record = asyncio.run(app.service.fetch_order_record(order_id))
    except OrderNotFoundError as e:
        return _response(404, {"message": str(e)})

    return _response(200, record)


def process_order_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """
    Run one workflow execution per queue record.

    Returns the summary document plus batchItemFailures, the message ids the
    queue should deliver again.
    """
    app = get_app()
    records = event.get("Records") or []
    result = asyncio.run(app.consumer.handle_records(records))

    response = result.summary()
    response["batchItemFailures"] = [
        {"itemIdentifier": message_id} for message_id in result.failed_message_ids
    ]
    logger.info(
        f"Processed {response['processed']} of {len(records)} record(s)",
        failures=len(response["batchItemFailures"]),
    )
    return response


def generate_receipt_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """
    Write the receipt for an order.

    The event carries orderId and, optionally, the payment output the
    receipt should reference. Rerunning overwrites the same key.
    """
    app = get_app()
    order_id = event.get("orderId")
    if not order_id:
        raise ValueError("generate_receipt_handler requires an orderId")

    async def _generate() -> Dict[str, Any]:
        order = await app.service.fetch_order(order_id)
        artifact = build_receipt(order, event.get("payment") or {})
        await app.stores.receipts.put(artifact)
        return {"receiptKey": artifact.key, "contentType": artifact.content_type}

    output = asyncio.run(_generate())
    return {**event, "receipt": output}
