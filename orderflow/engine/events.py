"""
Event types and schemas for the execution log.

Every state change of a workflow execution is recorded as an event in an
append-only log, which is what `orderflow executions show` renders.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, Optional


class EventType(Enum):
    """All possible event types in the execution log."""

    # Execution lifecycle events
    EXECUTION_STARTED = "execution.started"
    EXECUTION_COMPLETED = "execution.completed"
    EXECUTION_FAILED = "execution.failed"
    EXECUTION_TIMED_OUT = "execution.timed_out"

    # Step lifecycle events
    STEP_STARTED = "step.started"
    STEP_COMPLETED = "step.completed"
    STEP_FAILED = "step.failed"
    STEP_RETRYING = "step.retrying"


@dataclass
class Event:
    """
    Base event structure for all execution events.

    The sequence number is assigned by the storage layer to ensure ordering.
    """

    event_id: str = field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:16]}")
    execution_id: str = ""
    type: EventType = EventType.EXECUTION_STARTED
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    data: Dict[str, Any] = field(default_factory=dict)
    sequence: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.execution_id:
            raise ValueError("Event must have an execution_id")
        if not isinstance(self.type, EventType):
            raise TypeError(f"Event type must be EventType enum, got {type(self.type)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "execution_id": self.execution_id,
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
            "sequence": self.sequence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        return cls(
            event_id=data["event_id"],
            execution_id=data["execution_id"],
            type=EventType(data["type"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            data=data.get("data", {}),
            sequence=data.get("sequence"),
        )


def create_execution_started_event(execution_id: str, order_id: str) -> Event:
    """Create an execution started event."""
    return Event(
        execution_id=execution_id,
        type=EventType.EXECUTION_STARTED,
        data={"order_id": order_id},
    )


def create_execution_completed_event(execution_id: str, summary: Dict[str, Any]) -> Event:
    """Create an execution completed event."""
    return Event(
        execution_id=execution_id,
        type=EventType.EXECUTION_COMPLETED,
        data={"summary": summary},
    )


def create_execution_failed_event(
    execution_id: str, reason: str, state: str, error: str, error_type: str
) -> Event:
    """Create an execution failed event."""
    return Event(
        execution_id=execution_id,
        type=EventType.EXECUTION_FAILED,
        data={
            "reason": reason,
            "state": state,
            "error": error,
            "error_type": error_type,
        },
    )


def create_execution_timed_out_event(execution_id: str, state: str, timeout: float) -> Event:
    """Create an execution timed out event."""
    return Event(
        execution_id=execution_id,
        type=EventType.EXECUTION_TIMED_OUT,
        data={"state": state, "timeout": timeout},
    )


def create_step_started_event(execution_id: str, step_name: str, state: str) -> Event:
    """Create a step started event."""
    return Event(
        execution_id=execution_id,
        type=EventType.STEP_STARTED,
        data={"step_name": step_name, "state": state},
    )


def create_step_completed_event(
    execution_id: str, step_name: str, result_key: str, next_state: str
) -> Event:
    """Create a step completed event."""
    return Event(
        execution_id=execution_id,
        type=EventType.STEP_COMPLETED,
        data={"step_name": step_name, "result_key": result_key, "next_state": next_state},
    )


def create_step_failed_event(
    execution_id: str,
    step_name: str,
    error: str,
    error_type: str,
    is_retryable: bool,
) -> Event:
    """Create a step failed event."""
    return Event(
        execution_id=execution_id,
        type=EventType.STEP_FAILED,
        data={
            "step_name": step_name,
            "error": error,
            "error_type": error_type,
            "is_retryable": is_retryable,
        },
    )


def create_step_retrying_event(
    execution_id: str, step_name: str, attempt: int, delay: float, error: str
) -> Event:
    """Create a step retrying event."""
    return Event(
        execution_id=execution_id,
        type=EventType.STEP_RETRYING,
        data={"step_name": step_name, "attempt": attempt, "delay": delay, "error": error},
    )
