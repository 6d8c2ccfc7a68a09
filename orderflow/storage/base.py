"""
Abstract base classes for storage backends.

All storage implementations must implement these interfaces so the
workflow engine never depends on a concrete backend (memory, file).
"""

from abc import ABC, abstractmethod

from orderflow.engine.events import Event
from orderflow.storage.schemas import (
    ExecutionOutcome,
    Order,
    ReceiptArtifact,
    WorkflowExecution,
)


class OrderStore(ABC):
    """
    Durable key-value persistence for order records, keyed by order id.

    All methods are async to support both sync and async backends.
    """

    @abstractmethod
    async def put(self, order: Order) -> None:
        """
        Create or fully replace an order record.

        Args:
            order: Order to persist (idempotent on order_id)

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, order_id: str) -> Order | None:
        """
        Retrieve an order by ID.

        Args:
            order_id: Order identifier

        Returns:
            Order if found, None otherwise. Never a partial record.
        """
        pass

    @abstractmethod
    async def list_orders(self, limit: int = 100) -> list[Order]:
        """List orders, newest first."""
        pass


class ReceiptStore(ABC):
    """Blob storage for generated receipt artifacts."""

    @abstractmethod
    async def put(self, artifact: ReceiptArtifact) -> None:
        """
        Write an artifact, overwriting any existing blob at the same key.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> ReceiptArtifact | None:
        """Read an artifact by key."""
        pass

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> list[str]:
        """List stored keys with an optional prefix, sorted."""
        pass


class ExecutionStore(ABC):
    """
    Persistence for workflow executions and their event log.

    Storage backends are responsible for:
    - Holding at most one active execution per order
    - Archiving executions once they reach a terminal state
    - Managing the event log (append-only)
    """

    # Execution Operations

    @abstractmethod
    async def create_execution(self, execution: WorkflowExecution) -> None:
        """
        Register a new active execution.

        Raises:
            WorkflowAlreadyRunningError: If the order already has an active execution
        """
        pass

    @abstractmethod
    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        """Retrieve an active or archived execution by ID."""
        pass

    @abstractmethod
    async def get_active_execution(self, order_id: str) -> WorkflowExecution | None:
        """Retrieve the active execution for an order, if any."""
        pass

    @abstractmethod
    async def save_execution(self, execution: WorkflowExecution) -> None:
        """
        Persist the current state of an execution.

        Terminal executions are archived and release the order's active slot.
        """
        pass

    @abstractmethod
    async def list_executions(
        self,
        order_id: str | None = None,
        outcome: ExecutionOutcome | None = None,
        limit: int = 100,
    ) -> list[WorkflowExecution]:
        """List executions, newest first, with optional filtering."""
        pass

    # Event Log Operations

    @abstractmethod
    async def record_event(self, event: Event) -> None:
        """
        Record an event to the append-only event log.

        The backend assigns the sequence number.
        """
        pass

    @abstractmethod
    async def get_events(self, execution_id: str) -> list[Event]:
        """Retrieve all events for an execution, ordered by sequence."""
        pass
