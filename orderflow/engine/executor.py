"""
Workflow execution engine.

The executor is responsible for:
- Registering a new execution (at most one active per order)
- Driving the state machine under the overall execution timeout
- Recording lifecycle events
- Writing the order's final status once the execution is terminal
"""

import asyncio
import uuid
from datetime import UTC, datetime
from typing import Optional

from loguru import logger

from orderflow.context import Collaborators, ExecutionContext, reset_context, set_context
from orderflow.core.exceptions import WorkflowTimeoutError
from orderflow.core.retry import RetryDelay
from orderflow.engine.events import (
    create_execution_completed_event,
    create_execution_failed_event,
    create_execution_started_event,
    create_execution_timed_out_event,
    create_step_retrying_event,
)
from orderflow.engine.state_machine import StateMachine
from orderflow.observability.logging import execution_logging_context
from orderflow.storage.base import ExecutionStore
from orderflow.storage.schemas import (
    ExecutionOutcome,
    FailureReason,
    Order,
    OrderStatus,
    WorkflowExecution,
    WorkflowState,
)


def order_status_for(execution: WorkflowExecution) -> OrderStatus:
    """
    Final order status implied by a terminal execution.

    A failed notification does not undo the processing that already happened.
    """
    if execution.state == WorkflowState.COMPLETE:
        return OrderStatus.PROCESSED
    if execution.failure_reason == FailureReason.NOTIFY:
        return OrderStatus.PROCESSED
    return OrderStatus.FAILED


class WorkflowExecutor:
    """
    Runs one workflow execution per call to start().

    Executions share no mutable state, so any number of start() calls may
    run concurrently for different orders.

    Example:
        >>> executor = WorkflowExecutor(collaborators, InMemoryExecutionStore())
        >>> execution = await executor.start(order)
        >>> execution.state
        <WorkflowState.COMPLETE: 'Complete'>
    """

    def __init__(
        self,
        collaborators: Collaborators,
        execution_store: ExecutionStore,
        state_machine: Optional[StateMachine] = None,
        execution_timeout: float = 300.0,
        max_retries: int = 3,
        retry_delay: RetryDelay = "exponential",
    ) -> None:
        self.collaborators = collaborators
        self.execution_store = execution_store
        self.state_machine = state_machine or StateMachine()
        self.execution_timeout = execution_timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def start(self, order: Order) -> WorkflowExecution:
        """
        Execute the workflow for an order until it reaches a terminal state.

        Args:
            order: Working copy of the submitted order

        Returns:
            The terminal WorkflowExecution

        Raises:
            WorkflowAlreadyRunningError: If the order already has an active execution
            StorageError: If the final order status cannot be written
        """
        execution = WorkflowExecution(
            execution_id=f"exec_{uuid.uuid4().hex[:16]}",
            order_id=order.order_id,
            state=self.state_machine.initial_state,
        )
        store = self.execution_store
        await store.create_execution(execution)
        await store.record_event(
            create_execution_started_event(execution.execution_id, order.order_id)
        )

        async def _record_retry(name: str, attempt: int, delay: float, error: BaseException) -> None:
            await store.record_event(
                create_step_retrying_event(execution.execution_id, name, attempt, delay, str(error))
            )

        ctx = ExecutionContext(
            execution_id=execution.execution_id,
            order_id=order.order_id,
            collaborators=self.collaborators,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            on_retry=_record_retry,
        )

        token = set_context(ctx)
        try:
            with execution_logging_context(execution.execution_id, order.order_id):
                logger.info(f"Starting execution for order {order.order_id}")

                try:
                    await asyncio.wait_for(
                        self.state_machine.run(execution, order, store),
                        timeout=self.execution_timeout,
                    )
                except TimeoutError:
                    await self._time_out(execution)

                await self._finish(execution, order, ctx)
        finally:
            reset_context(token)

        return execution

    async def _time_out(self, execution: WorkflowExecution) -> None:
        if execution.is_terminal:
            return

        error = WorkflowTimeoutError(
            execution.execution_id, self.execution_timeout, execution.state.value
        )
        logger.error(f"Execution timed out in state {execution.state.value}")

        execution.failed_state = execution.state
        execution.state = WorkflowState.FAILED
        execution.outcome = ExecutionOutcome.TIMED_OUT
        execution.failure_reason = FailureReason.TIMEOUT
        execution.error = str(error)
        execution.completed_at = datetime.now(UTC)

        await self.execution_store.record_event(
            create_execution_timed_out_event(
                execution.execution_id, execution.failed_state.value, self.execution_timeout
            )
        )
        await self.execution_store.save_execution(execution)

    async def _finish(
        self, execution: WorkflowExecution, order: Order, ctx: ExecutionContext
    ) -> None:
        if execution.state == WorkflowState.COMPLETE:
            await self.execution_store.record_event(
                create_execution_completed_event(
                    execution.execution_id, execution.outputs.get("summary", {})
                )
            )
            logger.info("Execution completed")
        elif execution.outcome == ExecutionOutcome.FAILED:
            reason = execution.failure_reason.value if execution.failure_reason else "unknown"
            await self.execution_store.record_event(
                create_execution_failed_event(
                    execution.execution_id,
                    reason=reason,
                    state=execution.failed_state.value if execution.failed_state else "",
                    error=execution.error or "",
                    error_type="StepFailure",
                )
            )
            logger.warning(f"Execution failed: {reason}", error=execution.error)

        status = order_status_for(execution)
        await ctx.call_with_retries(
            "update_order_status", ctx.order_store.put, order.with_status(status)
        )
