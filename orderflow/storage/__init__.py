"""
Storage backends for orderflow.

Provides order, receipt, and execution persistence.
"""

from orderflow.storage.base import ExecutionStore, OrderStore, ReceiptStore
from orderflow.storage.config import Stores, create_stores
from orderflow.storage.file import FileExecutionStore, FileOrderStore, FileReceiptStore
from orderflow.storage.memory import (
    InMemoryExecutionStore,
    InMemoryOrderStore,
    InMemoryReceiptStore,
)
from orderflow.storage.schemas import (
    ExecutionOutcome,
    FailureReason,
    NotificationEvent,
    Order,
    OrderStatus,
    ReceiptArtifact,
    WorkflowExecution,
    WorkflowState,
)

__all__ = [
    "OrderStore",
    "ReceiptStore",
    "ExecutionStore",
    "InMemoryOrderStore",
    "InMemoryReceiptStore",
    "InMemoryExecutionStore",
    "FileOrderStore",
    "FileReceiptStore",
    "FileExecutionStore",
    "Stores",
    "create_stores",
    # Schemas
    "Order",
    "OrderStatus",
    "WorkflowExecution",
    "WorkflowState",
    "ExecutionOutcome",
    "FailureReason",
    "ReceiptArtifact",
    "NotificationEvent",
]
