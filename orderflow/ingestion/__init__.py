"""
Queue ingestion: turns work-queue deliveries into workflow executions.
"""

from orderflow.ingestion.consumer import BatchResult, MessageOutcome, QueueConsumer, decode_order

__all__ = [
    "QueueConsumer",
    "BatchResult",
    "MessageOutcome",
    "decode_order",
]
