"""Storage backend factory utilities."""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from orderflow.config import OrderFlowConfig
from orderflow.storage.base import ExecutionStore, OrderStore, ReceiptStore
from orderflow.storage.file import FileExecutionStore, FileOrderStore, FileReceiptStore
from orderflow.storage.memory import (
    InMemoryExecutionStore,
    InMemoryOrderStore,
    InMemoryReceiptStore,
)


@dataclass
class Stores:
    """The three stores one deployment shares."""

    orders: OrderStore
    receipts: ReceiptStore
    executions: ExecutionStore


def create_stores(
    backend_type: Optional[str] = None,
    path: Optional[str] = None,
    config: Optional[OrderFlowConfig] = None,
) -> Stores:
    """
    Create storage backends from configuration.

    Configuration priority:
    1. Explicit arguments (CLI flags)
    2. OrderFlowConfig (YAML file / environment)
    3. Default (memory backend)

    Args:
        backend_type: "memory" or "file"
        path: Base directory for the file backend
        config: Loaded configuration

    Returns:
        Stores bundle

    Raises:
        ValueError: If backend type is unsupported
    """
    backend = backend_type or (config.storage_backend if config else None) or "memory"

    if backend == "memory":
        logger.debug("Using in-memory stores")
        return Stores(
            orders=InMemoryOrderStore(),
            receipts=InMemoryReceiptStore(),
            executions=InMemoryExecutionStore(),
        )

    if backend == "file":
        storage_path = path or (config.storage_path if config else None) or "./orderflow_data"
        logger.debug(f"Using file stores with path: {storage_path}")
        return Stores(
            orders=FileOrderStore(storage_path),
            receipts=FileReceiptStore(storage_path),
            executions=FileExecutionStore(storage_path),
        )

    raise ValueError(f"Unsupported storage backend: {backend}. Supported backends: file, memory")
