"""
Data models for orders, workflow executions, receipts, and notifications.

These schemas define the structure of data stored in the storage backends.
Order records use the external camelCase layout; internal records use
snake_case like the rest of the codebase.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class OrderStatus(Enum):
    """Order lifecycle status as seen by API callers."""

    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class WorkflowState(Enum):
    """States of the order workflow state machine."""

    SUBMITTED = "Submitted"
    VALIDATED = "Validated"
    PAYMENT_PROCESSED = "PaymentProcessed"
    RECEIPT_GENERATED = "ReceiptGenerated"
    NOTIFIED = "Notified"
    COMPLETE = "Complete"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowState.COMPLETE, WorkflowState.FAILED)


class ExecutionOutcome(Enum):
    """Terminal outcome of a workflow execution."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class FailureReason(Enum):
    """Why an execution ended in the Failed state."""

    VALIDATION = "validation"
    PAYMENT = "payment"
    RECEIPT = "receipt"
    NOTIFY = "notify"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Order:
    """
    A customer purchase request.

    The order_id is assigned once at submission. Only status changes after
    that, and always through with_status(), which returns a new record.
    """

    order_id: str
    customer_name: str
    items: List[str]
    total: Decimal
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    status: OrderStatus = OrderStatus.PENDING

    def with_status(self, status: OrderStatus) -> "Order":
        return replace(self, status=status)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted record layout."""
        return {
            "orderId": self.order_id,
            "customerName": self.customer_name,
            "items": list(self.items),
            "total": float(self.total),
            "createdAt": self.created_at.isoformat(),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        """
        Create from the persisted record layout.

        Raises:
            KeyError: If a required field is missing
            TypeError: If items is not a list of strings
        """
        items = data["items"]
        if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
            raise TypeError("items must be a list of strings")
        return cls(
            order_id=data["orderId"],
            customer_name=data["customerName"],
            items=list(items),
            total=Decimal(str(data["total"])),
            created_at=datetime.fromisoformat(data["createdAt"]),
            status=OrderStatus(data.get("status", OrderStatus.PENDING.value)),
        )


@dataclass
class WorkflowExecution:
    """
    One run of the order workflow for a single order.

    Step outputs are append-only: each step contributes one key and no key
    is ever written twice.
    """

    execution_id: str
    order_id: str
    state: WorkflowState = WorkflowState.SUBMITTED
    outcome: ExecutionOutcome = ExecutionOutcome.RUNNING
    outputs: Dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: Optional[datetime] = None
    failure_reason: Optional[FailureReason] = None
    failed_state: Optional[WorkflowState] = None  # State whose step failed
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def record_output(self, key: str, value: Any) -> None:
        """Merge a step output under its key; existing keys are never replaced."""
        if key in self.outputs:
            raise KeyError(f"Output '{key}' already recorded for execution {self.execution_id}")
        self.outputs[key] = value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "execution_id": self.execution_id,
            "order_id": self.order_id,
            "state": self.state.value,
            "outcome": self.outcome.value,
            "outputs": self.outputs,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
            "failed_state": self.failed_state.value if self.failed_state else None,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowExecution":
        """Create from dictionary."""
        return cls(
            execution_id=data["execution_id"],
            order_id=data["order_id"],
            state=WorkflowState(data["state"]),
            outcome=ExecutionOutcome(data["outcome"]),
            outputs=dict(data.get("outputs", {})),
            started_at=datetime.fromisoformat(data["started_at"]),
            completed_at=(
                datetime.fromisoformat(data["completed_at"]) if data.get("completed_at") else None
            ),
            failure_reason=(
                FailureReason(data["failure_reason"]) if data.get("failure_reason") else None
            ),
            failed_state=(
                WorkflowState(data["failed_state"]) if data.get("failed_state") else None
            ),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class ReceiptArtifact:
    """Receipt blob stored under a key derived from the order id."""

    key: str
    content: bytes
    content_type: str = "application/json"

    @staticmethod
    def key_for(order_id: str) -> str:
        return f"receipts/{order_id}.json"


@dataclass(frozen=True)
class NotificationEvent:
    """Order-status message published to the notification channel."""

    order_id: str
    status: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"orderId": self.order_id, "status": self.status, "payload": self.payload}
