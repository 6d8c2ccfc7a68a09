"""
Order workflow state machine.

The workflow is a table of transitions evaluated by a single driver loop:

    Submitted --validate_order--> Validated --process_payment--> PaymentProcessed
      --generate_receipt--> ReceiptGenerated --notify_customer--> Notified
      --complete_order--> Complete

Any step failure moves the execution to Failed with the reason given by the
transition row. States only move forward; each step sees the outputs of the
steps before it and never those after it.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from loguru import logger

from orderflow.core.exceptions import FatalError, RetryableError
from orderflow.core.steps import (
    complete_order,
    generate_receipt,
    notify_customer,
    process_payment,
    validate_order,
)
from orderflow.engine.events import (
    create_step_completed_event,
    create_step_failed_event,
    create_step_started_event,
)
from orderflow.observability.logging import step_logging_context
from orderflow.storage.base import ExecutionStore
from orderflow.storage.schemas import (
    ExecutionOutcome,
    FailureReason,
    Order,
    WorkflowExecution,
    WorkflowState,
)

StepFunction = Callable[[Order, Mapping[str, Any]], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class Transition:
    """
    One row of the transition table.

    Attributes:
        state: State the step runs from
        step: Step function
        result_key: Key the step output is stored under
        on_success: Next state when the step returns
        on_failure: Next state when the step raises
        failure_reason: Reason recorded when the step raises
    """

    state: WorkflowState
    step: StepFunction
    result_key: str
    on_success: WorkflowState
    on_failure: WorkflowState = WorkflowState.FAILED
    failure_reason: Optional[FailureReason] = None

    @property
    def step_name(self) -> str:
        return getattr(self.step, "__name__", self.result_key)


ORDER_WORKFLOW: Tuple[Transition, ...] = (
    Transition(
        WorkflowState.SUBMITTED,
        validate_order,
        "validation",
        WorkflowState.VALIDATED,
        failure_reason=FailureReason.VALIDATION,
    ),
    Transition(
        WorkflowState.VALIDATED,
        process_payment,
        "payment",
        WorkflowState.PAYMENT_PROCESSED,
        failure_reason=FailureReason.PAYMENT,
    ),
    Transition(
        WorkflowState.PAYMENT_PROCESSED,
        generate_receipt,
        "receipt",
        WorkflowState.RECEIPT_GENERATED,
        failure_reason=FailureReason.RECEIPT,
    ),
    Transition(
        WorkflowState.RECEIPT_GENERATED,
        notify_customer,
        "notification",
        WorkflowState.NOTIFIED,
        failure_reason=FailureReason.NOTIFY,
    ),
    Transition(
        WorkflowState.NOTIFIED,
        complete_order,
        "summary",
        WorkflowState.COMPLETE,
    ),
)


class StateMachine:
    """
    Drives a WorkflowExecution through a transition table.

    The execution object is mutated in place and saved after every
    transition, so an outer timeout can always see which state was in
    flight.
    """

    def __init__(
        self,
        transitions: Tuple[Transition, ...] = ORDER_WORKFLOW,
        initial_state: WorkflowState = WorkflowState.SUBMITTED,
    ) -> None:
        self._table: Dict[WorkflowState, Transition] = {}
        for transition in transitions:
            if transition.state in self._table:
                raise ValueError(f"Duplicate transition from state {transition.state.value}")
            if transition.state.is_terminal:
                raise ValueError(f"Terminal state {transition.state.value} cannot have a step")
            self._table[transition.state] = transition
        self.initial_state = initial_state

    @property
    def transitions(self) -> Tuple[Transition, ...]:
        return tuple(self._table.values())

    def transition_for(self, state: WorkflowState) -> Transition:
        try:
            return self._table[state]
        except KeyError:
            raise ValueError(f"No transition defined from state {state.value}") from None

    async def run(
        self,
        execution: WorkflowExecution,
        order: Order,
        store: ExecutionStore,
    ) -> WorkflowExecution:
        """
        Advance the execution until it reaches a terminal state.

        Args:
            execution: Execution to drive (mutated in place)
            order: Working copy of the order
            store: Where transitions and events are recorded

        Returns:
            The same execution, now terminal
        """
        while not execution.is_terminal:
            transition = self.transition_for(execution.state)
            step_name = transition.step_name

            await store.record_event(
                create_step_started_event(
                    execution.execution_id, step_name, execution.state.value
                )
            )

            with step_logging_context(step_name):
                logger.info(f"Executing step: {step_name}")
                try:
                    output = await transition.step(order, MappingProxyType(dict(execution.outputs)))
                except Exception as e:
                    await self._fail(execution, transition, e, store)
                    break

                execution.record_output(transition.result_key, output)
                execution.state = transition.on_success
                logger.info(f"Step completed: {step_name}")

            await store.record_event(
                create_step_completed_event(
                    execution.execution_id,
                    step_name,
                    transition.result_key,
                    execution.state.value,
                )
            )

            if execution.state == WorkflowState.COMPLETE:
                execution.outcome = ExecutionOutcome.SUCCEEDED
                execution.completed_at = datetime.now(UTC)

            await store.save_execution(execution)

        return execution

    async def _fail(
        self,
        execution: WorkflowExecution,
        transition: Transition,
        error: Exception,
        store: ExecutionStore,
    ) -> None:
        step_name = transition.step_name
        is_retryable = isinstance(error, RetryableError)

        if isinstance(error, (FatalError, RetryableError)):
            logger.warning(f"Step failed: {step_name}", error=str(error))
        else:
            logger.opt(exception=error).error(
                f"Step failed (unexpected): {step_name}", error=str(error)
            )

        await store.record_event(
            create_step_failed_event(
                execution.execution_id,
                step_name,
                error=str(error),
                error_type=type(error).__name__,
                is_retryable=is_retryable,
            )
        )

        execution.failed_state = execution.state
        execution.state = transition.on_failure
        execution.outcome = ExecutionOutcome.FAILED
        execution.failure_reason = transition.failure_reason
        execution.error = str(error)
        execution.completed_at = datetime.now(UTC)
        await store.save_execution(execution)
