"""Service layer for order submission and lookup."""

import json
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Mapping

import pydantic
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from orderflow.core.exceptions import OrderNotFoundError, ValidationError
from orderflow.messaging.queue import WorkQueue
from orderflow.storage.base import OrderStore
from orderflow.storage.schemas import Order, OrderStatus


class OrderRequest(BaseModel):
    """Request model for submitting an order."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    customer_name: str = Field(alias="customerName")
    items: List[str]
    total: Decimal = Field(ge=0)


class OrderService:
    """Submit and fetch orders."""

    def __init__(self, order_store: OrderStore, queue: WorkQueue):
        """Initialize with the order table and the work queue.

        Args:
            order_store: Where order records are persisted.
            queue: Queue carrying order submission events.
        """
        self.order_store = order_store
        self.queue = queue

    @staticmethod
    def parse_request(payload: Mapping[str, Any]) -> OrderRequest:
        """Validate a raw submission payload.

        Args:
            payload: Mapping with customerName, items and total.

        Returns:
            The validated OrderRequest.

        Raises:
            ValidationError: If the payload is malformed.
        """
        try:
            return OrderRequest.model_validate(payload)
        except pydantic.ValidationError as e:
            reasons = [
                f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}"
                for err in e.errors()
            ]
            raise ValidationError("Invalid order submission", reasons) from e

    async def submit_order(self, payload: Mapping[str, Any]) -> str:
        """Persist a new order as PENDING and enqueue it for processing.

        Args:
            payload: Mapping with customerName, items and total.

        Returns:
            The generated order id.

        Raises:
            ValidationError: If the payload is malformed.
            StorageError: If the order cannot be persisted.
        """
        request = self.parse_request(payload)
        order = Order(
            order_id=str(uuid.uuid4()),
            customer_name=request.customer_name,
            items=list(request.items),
            total=request.total,
            status=OrderStatus.PENDING,
        )

        await self.order_store.put(order)
        message_id = await self.queue.send(json.dumps(order.to_dict()))

        logger.info(
            f"Order submitted: {order.order_id}",
            order_id=order.order_id,
            message_id=message_id,
        )
        return order.order_id

    async def fetch_order(self, order_id: str) -> Order:
        """Get an order by id.

        Args:
            order_id: The order id.

        Returns:
            The stored order.

        Raises:
            OrderNotFoundError: If no order has that id.
        """
        order = await self.order_store.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def fetch_order_record(self, order_id: str) -> Dict[str, Any]:
        """Get an order in its persisted record layout."""
        order = await self.fetch_order(order_id)
        return order.to_dict()
