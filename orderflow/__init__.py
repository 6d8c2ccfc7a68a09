"""
orderflow - A serverless-style order-processing pipeline.

Orders are submitted through the service, carried on an at-least-once work
queue, and driven by a state machine through validation, payment, receipt
generation, and customer notification.

Quick Start:
    >>> import orderflow
    >>> from orderflow import create_app
    >>>
    >>> orderflow.configure(notification_api_key="local-dev-key")
    >>> app = create_app()
    >>>
    >>> order_id = await app.service.submit_order(
    ...     {"customerName": "Alice", "items": ["widget", "gadget"], "total": 49.99}
    ... )
    >>> result = await app.consumer.process_batch()
    >>> result.summary()
    {'processed': 1, 'results': [{'orderId': '...', 'status': 'PROCESSED'}]}
"""

__version__ = "0.1.0"

# Configuration
from orderflow.config import OrderFlowConfig, configure, get_config, reset_config

# Application wiring
from orderflow.app import OrderFlowApp, create_app

# Exceptions
from orderflow.core.exceptions import (
    ConfigurationError,
    ExecutionNotFoundError,
    FatalError,
    MessageFormatError,
    NotFoundError,
    NotificationError,
    OrderFlowError,
    OrderNotFoundError,
    PaymentError,
    RetryableError,
    StorageError,
    ValidationError,
    WorkflowAlreadyRunningError,
    WorkflowTimeoutError,
)

# Engine
from orderflow.engine.executor import WorkflowExecutor
from orderflow.engine.state_machine import ORDER_WORKFLOW, StateMachine, Transition

# Ingestion and service
from orderflow.ingestion.consumer import BatchResult, QueueConsumer
from orderflow.service import OrderRequest, OrderService

# Storage schemas
from orderflow.storage.schemas import (
    ExecutionOutcome,
    FailureReason,
    Order,
    OrderStatus,
    ReceiptArtifact,
    WorkflowExecution,
    WorkflowState,
)

# Logging
from orderflow.observability.logging import configure_logging, configure_logging_from_env

__all__ = [
    # Version
    "__version__",
    # Configuration
    "OrderFlowConfig",
    "configure",
    "get_config",
    "reset_config",
    # Application
    "OrderFlowApp",
    "create_app",
    # Engine
    "WorkflowExecutor",
    "StateMachine",
    "Transition",
    "ORDER_WORKFLOW",
    # Ingestion and service
    "QueueConsumer",
    "BatchResult",
    "OrderService",
    "OrderRequest",
    # Schemas
    "Order",
    "OrderStatus",
    "WorkflowExecution",
    "WorkflowState",
    "ExecutionOutcome",
    "FailureReason",
    "ReceiptArtifact",
    # Exceptions
    "OrderFlowError",
    "FatalError",
    "RetryableError",
    "ValidationError",
    "PaymentError",
    "StorageError",
    "NotificationError",
    "WorkflowTimeoutError",
    "OrderNotFoundError",
    "NotFoundError",
    "ExecutionNotFoundError",
    "WorkflowAlreadyRunningError",
    "MessageFormatError",
    "ConfigurationError",
    # Logging
    "configure_logging",
    "configure_logging_from_env",
]
