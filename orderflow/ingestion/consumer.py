"""
Queue consumer for order submission events.

Messages in a batch are handled concurrently and in isolation: one
message's failure never affects the others. Each message ends either
acknowledged (deleted) or released for redelivery. Released messages count
towards the queue's max receive count and eventually reach the dead-letter
path.

Acknowledged:
    success, validation failure, payment failure, notify failure
Released:
    malformed body, order already being processed, timeout,
    receipt failure, unexpected errors
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from loguru import logger

from orderflow.config import MAX_BATCH_SIZE
from orderflow.core.exceptions import MessageFormatError, WorkflowAlreadyRunningError
from orderflow.engine.executor import WorkflowExecutor, order_status_for
from orderflow.messaging.queue import QueueMessage, WorkQueue
from orderflow.storage.schemas import FailureReason, Order, OrderStatus, WorkflowExecution

# Failures worth another delivery; the rest are final decisions
REDELIVER_REASONS = frozenset({FailureReason.TIMEOUT, FailureReason.RECEIPT})


def decode_order(body: str) -> Order:
    """
    Decode a queue message body into an order.

    Raises:
        MessageFormatError: If the body is not a valid order record
    """
    try:
        data = json.loads(body)
        if not isinstance(data, dict):
            raise TypeError(f"expected an object, got {type(data).__name__}")
        return Order.from_dict(data)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, ArithmeticError) as e:
        raise MessageFormatError(f"Malformed order message: {e}") from e


@dataclass
class MessageOutcome:
    """What happened to one delivered message."""

    message_id: str
    order_id: Optional[str] = None
    execution_id: Optional[str] = None
    status: Optional[OrderStatus] = None
    failure_reason: Optional[FailureReason] = None
    redeliver: bool = False
    error: Optional[str] = None

    @property
    def reached_terminal_state(self) -> bool:
        return self.status is not None

    @classmethod
    def from_execution(cls, message_id: str, execution: WorkflowExecution) -> "MessageOutcome":
        return cls(
            message_id=message_id,
            order_id=execution.order_id,
            execution_id=execution.execution_id,
            status=order_status_for(execution),
            failure_reason=execution.failure_reason,
            redeliver=execution.failure_reason in REDELIVER_REASONS,
            error=execution.error,
        )


@dataclass
class BatchResult:
    """Outcomes of one or more delivered batches."""

    outcomes: List[MessageOutcome] = field(default_factory=list)

    def extend(self, other: "BatchResult") -> None:
        self.outcomes.extend(other.outcomes)

    @property
    def failed_message_ids(self) -> List[str]:
        """Message ids left for redelivery."""
        return [o.message_id for o in self.outcomes if o.redeliver]

    def summary(self) -> Dict[str, Any]:
        """Summary document over messages whose execution reached a terminal state."""
        terminal = [o for o in self.outcomes if o.reached_terminal_state]
        return {
            "processed": len(terminal),
            "results": [{"orderId": o.order_id, "status": o.status.value} for o in terminal],
        }

    def __len__(self) -> int:
        return len(self.outcomes)


class QueueConsumer:
    """
    Pulls batches from a WorkQueue and runs one workflow execution per message.

    Example:
        >>> consumer = QueueConsumer(queue, executor, batch_size=10)
        >>> result = await consumer.process_batch()
        >>> result.summary()
        {'processed': 1, 'results': [{'orderId': '...', 'status': 'PROCESSED'}]}
    """

    def __init__(
        self,
        queue: WorkQueue,
        executor: WorkflowExecutor,
        batch_size: int = MAX_BATCH_SIZE,
    ) -> None:
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")
        self.queue = queue
        self.executor = executor
        self.batch_size = batch_size

    async def process_batch(self) -> BatchResult:
        """Receive one batch, run it, and acknowledge or release each message."""
        messages = await self.queue.receive(self.batch_size)
        if not messages:
            return BatchResult()

        logger.info(f"Processing batch of {len(messages)} message(s)")
        outcomes = await asyncio.gather(*(self._process_message(m) for m in messages))
        return BatchResult(outcomes=list(outcomes))

    async def drain(self, max_batches: Optional[int] = None) -> BatchResult:
        """
        Process batches until the queue has nothing visible.

        Released messages become visible again at once, so a persistently
        failing message is retried until the queue dead-letters it.
        """
        result = BatchResult()
        batches = 0
        while max_batches is None or batches < max_batches:
            batch = await self.process_batch()
            if not batch:
                break
            result.extend(batch)
            batches += 1
        return result

    async def handle_records(self, records: Iterable[Mapping[str, Any]]) -> BatchResult:
        """
        Run a batch delivered by an event source mapping.

        Records carry "messageId" and "body". The caller reports
        BatchResult.failed_message_ids back to the queue; nothing is
        acknowledged here.
        """
        outcomes = await asyncio.gather(
            *(
                self._run(str(record.get("messageId", "")), record.get("body", ""))
                for record in records
            )
        )
        return BatchResult(outcomes=list(outcomes))

    async def _process_message(self, message: QueueMessage) -> MessageOutcome:
        outcome = await self._run(message.message_id, message.body)
        handle = message.receipt_handle
        if handle is None:
            return outcome

        try:
            if outcome.redeliver:
                await self.queue.release(handle)
            else:
                await self.queue.delete(handle)
        except Exception as e:
            # The visibility timeout brings the message back either way
            logger.error(
                f"Failed to settle message: {e}",
                message_id=message.message_id,
            )
        return outcome

    async def _run(self, message_id: str, body: str) -> MessageOutcome:
        with logger.contextualize(message_id=message_id):
            try:
                order = decode_order(body)
            except MessageFormatError as e:
                logger.warning(f"Rejected message: {e}")
                return MessageOutcome(message_id=message_id, redeliver=True, error=str(e))

            try:
                execution = await self.executor.start(order)
            except WorkflowAlreadyRunningError as e:
                logger.info(f"Order {order.order_id} is already being processed")
                return MessageOutcome(
                    message_id=message_id,
                    order_id=order.order_id,
                    execution_id=e.execution_id,
                    redeliver=True,
                    error=str(e),
                )
            except Exception as e:
                logger.opt(exception=e).error(f"Execution for order {order.order_id} errored")
                return MessageOutcome(
                    message_id=message_id,
                    order_id=order.order_id,
                    redeliver=True,
                    error=str(e),
                )

            outcome = MessageOutcome.from_execution(message_id, execution)
            logger.info(
                f"Order {order.order_id} finished as {outcome.status.value}",
                execution_id=execution.execution_id,
                redeliver=outcome.redeliver,
            )
            return outcome
