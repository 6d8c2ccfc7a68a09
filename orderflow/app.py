"""
Application wiring.

create_app() builds every adapter from an OrderFlowConfig and connects
them: stores, work queue, notification channel, payment gateway, config and
secret sources, the workflow executor, the queue consumer, and the order
service. Handlers and the CLI both go through an OrderFlowApp.
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from orderflow.config import OrderFlowConfig, get_config
from orderflow.context import Collaborators
from orderflow.engine.executor import WorkflowExecutor
from orderflow.ingestion.consumer import QueueConsumer
from orderflow.messaging.notifications import LoggingNotificationChannel, NotificationChannel
from orderflow.messaging.queue import FileWorkQueue, InMemoryWorkQueue, WorkQueue
from orderflow.payments import ApprovingPaymentGateway, PaymentGateway
from orderflow.service import OrderService
from orderflow.sources import (
    MAX_ITEMS_PER_ORDER,
    NOTIFICATION_API_KEY,
    ConfigSource,
    EnvironmentConfigSource,
    EnvironmentSecretSource,
    SecretSource,
)
from orderflow.storage.config import Stores, create_stores


@dataclass
class OrderFlowApp:
    """Everything one deployment of the pipeline needs."""

    config: OrderFlowConfig
    stores: Stores
    queue: WorkQueue
    collaborators: Collaborators
    executor: WorkflowExecutor
    consumer: QueueConsumer
    service: OrderService


def create_queue(config: OrderFlowConfig) -> WorkQueue:
    """Create the work queue matching the configured storage backend."""
    if config.storage_backend == "file":
        return FileWorkQueue(
            config.storage_path,
            max_receive_count=config.max_receive_count,
            visibility_timeout=config.visibility_timeout,
        )
    return InMemoryWorkQueue(
        max_receive_count=config.max_receive_count,
        visibility_timeout=config.visibility_timeout,
    )


def create_app(
    config: Optional[OrderFlowConfig] = None,
    stores: Optional[Stores] = None,
    queue: Optional[WorkQueue] = None,
    notifications: Optional[NotificationChannel] = None,
    payments: Optional[PaymentGateway] = None,
    config_source: Optional[ConfigSource] = None,
    secret_source: Optional[SecretSource] = None,
) -> OrderFlowApp:
    """
    Wire the pipeline.

    Any adapter passed explicitly replaces the one built from config.

    Args:
        config: Configuration (defaults to the global config)
        stores: Order, receipt and execution stores
        queue: Work queue
        notifications: Notification channel
        payments: Payment gateway
        config_source: Lookup for max-items-per-order
        secret_source: Lookup for notification-api-key

    Returns:
        Wired OrderFlowApp
    """
    config = config or get_config()
    stores = stores or create_stores(config=config)
    queue = queue or create_queue(config)

    if config_source is None:
        config_source = EnvironmentConfigSource(
            defaults={MAX_ITEMS_PER_ORDER: config.max_items_per_order}
        )
    if secret_source is None:
        secret_defaults = {}
        if config.notification_api_key:
            secret_defaults[NOTIFICATION_API_KEY] = config.notification_api_key
        secret_source = EnvironmentSecretSource(defaults=secret_defaults)

    collaborators = Collaborators(
        order_store=stores.orders,
        receipt_store=stores.receipts,
        notifications=notifications or LoggingNotificationChannel(),
        payments=payments or ApprovingPaymentGateway(),
        config_source=config_source,
        secret_source=secret_source,
    )
    executor = WorkflowExecutor(
        collaborators,
        stores.executions,
        execution_timeout=config.execution_timeout,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
    )
    consumer = QueueConsumer(queue, executor, batch_size=config.batch_size)
    service = OrderService(stores.orders, queue)

    logger.debug(f"Application wired with {config.storage_backend} storage")
    return OrderFlowApp(
        config=config,
        stores=stores,
        queue=queue,
        collaborators=collaborators,
        executor=executor,
        consumer=consumer,
        service=service,
    )
