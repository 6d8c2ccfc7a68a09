"""
In-memory storage backends for testing and single-process runs.

Note: All data is lost when the process exits.
"""

import copy
import threading

from orderflow.core.exceptions import WorkflowAlreadyRunningError
from orderflow.engine.events import Event
from orderflow.storage.base import ExecutionStore, OrderStore, ReceiptStore
from orderflow.storage.schemas import (
    ExecutionOutcome,
    Order,
    ReceiptArtifact,
    WorkflowExecution,
)


class InMemoryOrderStore(OrderStore):
    """
    Thread-safe in-memory order table.

    Example:
        >>> store = InMemoryOrderStore()
        >>> await store.put(order)
    """

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._lock = threading.RLock()

    async def put(self, order: Order) -> None:
        with self._lock:
            self._orders[order.order_id] = order

    async def get(self, order_id: str) -> Order | None:
        with self._lock:
            return self._orders.get(order_id)

    async def list_orders(self, limit: int = 100) -> list[Order]:
        with self._lock:
            orders = sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)
            return orders[:limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)


class InMemoryReceiptStore(ReceiptStore):
    """Thread-safe in-memory blob store keyed by receipt key."""

    def __init__(self) -> None:
        self._blobs: dict[str, ReceiptArtifact] = {}
        self._lock = threading.RLock()

    async def put(self, artifact: ReceiptArtifact) -> None:
        with self._lock:
            self._blobs[artifact.key] = artifact

    async def get(self, key: str) -> ReceiptArtifact | None:
        with self._lock:
            return self._blobs.get(key)

    async def list_keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in self._blobs if k.startswith(prefix))

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)


class InMemoryExecutionStore(ExecutionStore):
    """
    Thread-safe in-memory execution store.

    Active executions are indexed by order id; terminal ones move to the
    archive. Stored executions are copies, so callers mutating their working
    object never alter stored state without save_execution().
    """

    def __init__(self) -> None:
        self._executions: dict[str, WorkflowExecution] = {}
        self._active_by_order: dict[str, str] = {}  # order_id -> execution_id
        self._events: dict[str, list[Event]] = {}
        self._event_sequences: dict[str, int] = {}  # execution_id -> next sequence
        self._lock = threading.RLock()

    # Execution Operations

    async def create_execution(self, execution: WorkflowExecution) -> None:
        with self._lock:
            active_id = self._active_by_order.get(execution.order_id)
            if active_id is not None:
                raise WorkflowAlreadyRunningError(execution.order_id, active_id)
            if execution.execution_id in self._executions:
                raise ValueError(f"Execution {execution.execution_id} already exists")
            self._executions[execution.execution_id] = copy.deepcopy(execution)
            self._active_by_order[execution.order_id] = execution.execution_id
            self._events[execution.execution_id] = []
            self._event_sequences[execution.execution_id] = 0

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        with self._lock:
            execution = self._executions.get(execution_id)
            return copy.deepcopy(execution) if execution else None

    async def get_active_execution(self, order_id: str) -> WorkflowExecution | None:
        with self._lock:
            execution_id = self._active_by_order.get(order_id)
            if execution_id is None:
                return None
            return copy.deepcopy(self._executions[execution_id])

    async def save_execution(self, execution: WorkflowExecution) -> None:
        with self._lock:
            self._executions[execution.execution_id] = copy.deepcopy(execution)
            if execution.is_terminal:
                if self._active_by_order.get(execution.order_id) == execution.execution_id:
                    del self._active_by_order[execution.order_id]

    async def list_executions(
        self,
        order_id: str | None = None,
        outcome: ExecutionOutcome | None = None,
        limit: int = 100,
    ) -> list[WorkflowExecution]:
        with self._lock:
            executions = list(self._executions.values())

            if order_id:
                executions = [e for e in executions if e.order_id == order_id]
            if outcome:
                executions = [e for e in executions if e.outcome == outcome]

            executions.sort(key=lambda e: e.started_at, reverse=True)
            return [copy.deepcopy(e) for e in executions[:limit]]

    # Event Log Operations

    async def record_event(self, event: Event) -> None:
        with self._lock:
            execution_id = event.execution_id
            if execution_id not in self._events:
                self._events[execution_id] = []
                self._event_sequences[execution_id] = 0

            event.sequence = self._event_sequences[execution_id]
            self._event_sequences[execution_id] += 1
            self._events[execution_id].append(event)

    async def get_events(self, execution_id: str) -> list[Event]:
        with self._lock:
            events = list(self._events.get(execution_id, []))
            events.sort(key=lambda e: e.sequence or 0)
            return events

    def __repr__(self) -> str:
        with self._lock:
            return (
                f"InMemoryExecutionStore("
                f"executions={len(self._executions)}, "
                f"active={len(self._active_by_order)}, "
                f"events={sum(len(e) for e in self._events.values())})"
            )
