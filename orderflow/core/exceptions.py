"""
Exception hierarchy for orderflow.

Errors fall in two families:
- FatalError: a decision (invalid order, declined payment). Never retried.
- RetryableError: a transient fault at an adapter boundary (storage,
  notification). Retried with backoff before surfacing as a step failure.
"""

from typing import List, Optional


class OrderFlowError(Exception):
    """Base exception for all orderflow errors."""

    pass


class FatalError(OrderFlowError):
    """Error that must not be retried."""

    pass


class RetryableError(OrderFlowError):
    """
    Error that may succeed on a later attempt.

    Args:
        message: Error message
        retry_after: Optional delay hint in seconds
    """

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ValidationError(FatalError):
    """Order failed validation."""

    def __init__(self, message: str, reasons: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.reasons = list(reasons or [])


class PaymentError(FatalError):
    """Payment was declined or the payment service failed."""

    def __init__(self, message: str, decline_code: Optional[str] = None) -> None:
        super().__init__(message)
        self.decline_code = decline_code


class StorageError(RetryableError):
    """Order or receipt persistence failed."""

    pass


class NotificationError(RetryableError):
    """Publishing to the notification channel failed."""

    pass


class WorkflowTimeoutError(OrderFlowError):
    """Execution exceeded its overall timeout."""

    def __init__(self, execution_id: str, timeout: float, state: Optional[str] = None) -> None:
        super().__init__(
            f"Execution {execution_id} exceeded {timeout}s"
            + (f" while in state {state}" if state else "")
        )
        self.execution_id = execution_id
        self.timeout = timeout
        self.state = state


class OrderNotFoundError(OrderFlowError):
    """Order lookup found nothing."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


NotFoundError = OrderNotFoundError


class ExecutionNotFoundError(OrderFlowError):
    """Workflow execution lookup found nothing."""

    def __init__(self, execution_id: str) -> None:
        super().__init__(f"Execution {execution_id} not found")
        self.execution_id = execution_id


class WorkflowAlreadyRunningError(OrderFlowError):
    """An execution is already active for this order."""

    def __init__(self, order_id: str, execution_id: str) -> None:
        super().__init__(f"Order {order_id} already has active execution {execution_id}")
        self.order_id = order_id
        self.execution_id = execution_id


class MessageFormatError(OrderFlowError):
    """Queue message body could not be decoded into an order."""

    pass


class ConfigurationError(OrderFlowError):
    """Configuration error for orderflow."""

    pass
