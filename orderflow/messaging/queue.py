"""
Work queue with at-least-once delivery and a dead-letter path.

Delivery semantics:
- receive() hands out up to max_messages visible messages and hides them
  for visibility_timeout seconds.
- Every delivery increments the message's receive_count. A message that
  has already been delivered max_receive_count times is moved to the
  dead-letter path instead of being delivered again.
- delete() acknowledges a message. release() makes it visible again at once.
- Dead letters are only replayed by an operator via redrive_dead_letters().
"""

import json
import threading
import time
import uuid
from abc import ABC, abstractmethod
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional

from loguru import logger

from orderflow.config import MAX_BATCH_SIZE
from orderflow.core.exceptions import StorageError


@dataclass
class QueueMessage:
    """A message on the work queue."""

    message_id: str
    body: str
    sent_at: datetime
    receive_count: int = 0
    receipt_handle: Optional[str] = None
    dead_lettered_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_id": self.message_id,
            "body": self.body,
            "sent_at": self.sent_at.isoformat(),
            "receive_count": self.receive_count,
            "receipt_handle": self.receipt_handle,
            "dead_lettered_at": (
                self.dead_lettered_at.isoformat() if self.dead_lettered_at else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueueMessage":
        return cls(
            message_id=data["message_id"],
            body=data["body"],
            sent_at=datetime.fromisoformat(data["sent_at"]),
            receive_count=data.get("receive_count", 0),
            receipt_handle=data.get("receipt_handle"),
            dead_lettered_at=(
                datetime.fromisoformat(data["dead_lettered_at"])
                if data.get("dead_lettered_at")
                else None
            ),
        )


@dataclass(frozen=True)
class QueueStats:
    """Approximate message counts."""

    visible: int
    in_flight: int
    dead_lettered: int


class WorkQueue(ABC):
    """At-least-once delivery queue carrying order submission events."""

    @abstractmethod
    async def send(self, body: str) -> str:
        """Enqueue a message body; returns the message id."""
        pass

    @abstractmethod
    async def receive(self, max_messages: int = MAX_BATCH_SIZE) -> List[QueueMessage]:
        """Receive up to max_messages visible messages."""
        pass

    @abstractmethod
    async def delete(self, receipt_handle: str) -> bool:
        """Acknowledge a delivered message. Returns False for stale handles."""
        pass

    @abstractmethod
    async def release(self, receipt_handle: str) -> bool:
        """Return a delivered message to the queue for redelivery."""
        pass

    @abstractmethod
    async def dead_letters(self) -> List[QueueMessage]:
        """List messages on the dead-letter path."""
        pass

    @abstractmethod
    async def redrive_dead_letters(self, message_ids: Optional[List[str]] = None) -> int:
        """
        Move dead letters back to the live queue with a fresh receive count.

        Args:
            message_ids: Only redrive these messages (default: all)

        Returns:
            Number of messages moved
        """
        pass

    @abstractmethod
    async def stats(self) -> QueueStats:
        """Return approximate message counts."""
        pass


class InMemoryWorkQueue(WorkQueue):
    """
    Thread-safe in-memory work queue.

    Example:
        >>> queue = InMemoryWorkQueue(max_receive_count=3)
        >>> await queue.send('{"orderId": "..."}')
        >>> batch = await queue.receive(10)
    """

    def __init__(
        self,
        max_receive_count: int = 3,
        visibility_timeout: float = 360.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_receive_count < 1:
            raise ValueError("max_receive_count must be at least 1")
        self.max_receive_count = max_receive_count
        self.visibility_timeout = visibility_timeout
        self._clock = clock
        self._lock = threading.RLock()

        self._visible: "OrderedDict[str, QueueMessage]" = OrderedDict()
        self._in_flight: Dict[str, tuple[QueueMessage, float]] = {}  # handle -> (msg, deadline)
        self._dead: "OrderedDict[str, QueueMessage]" = OrderedDict()

    # Persistence hooks; the in-memory queue keeps everything in the dicts

    def _load(self) -> None:
        pass

    def _save(self) -> None:
        pass

    @contextmanager
    def _transaction(self) -> Generator[None, None, None]:
        with self._lock:
            self._load()
            yield
            self._save()

    def _expire_in_flight(self, now: float) -> None:
        expired = [h for h, (_, deadline) in self._in_flight.items() if deadline <= now]
        for handle in expired:
            message, _ = self._in_flight.pop(handle)
            message.receipt_handle = None
            self._visible[message.message_id] = message

    def _dead_letter(self, message: QueueMessage) -> None:
        message.receipt_handle = None
        message.dead_lettered_at = datetime.now(UTC)
        self._dead[message.message_id] = message
        logger.warning(
            f"Message moved to dead-letter path after {message.receive_count} deliveries",
            message_id=message.message_id,
        )

    async def send(self, body: str) -> str:
        message = QueueMessage(
            message_id=str(uuid.uuid4()),
            body=body,
            sent_at=datetime.now(UTC),
        )
        with self._transaction():
            self._visible[message.message_id] = message
        logger.debug("Message enqueued", message_id=message.message_id)
        return message.message_id

    async def receive(self, max_messages: int = MAX_BATCH_SIZE) -> List[QueueMessage]:
        if not 1 <= max_messages <= MAX_BATCH_SIZE:
            raise ValueError(f"max_messages must be between 1 and {MAX_BATCH_SIZE}")

        delivered: List[QueueMessage] = []
        with self._transaction():
            now = self._clock()
            self._expire_in_flight(now)

            while self._visible and len(delivered) < max_messages:
                _, message = self._visible.popitem(last=False)
                if message.receive_count >= self.max_receive_count:
                    self._dead_letter(message)
                    continue

                message.receive_count += 1
                message.receipt_handle = uuid.uuid4().hex
                self._in_flight[message.receipt_handle] = (
                    message,
                    now + self.visibility_timeout,
                )
                delivered.append(replace(message))

        return delivered

    async def delete(self, receipt_handle: str) -> bool:
        with self._transaction():
            entry = self._in_flight.pop(receipt_handle, None)
        if entry is None:
            logger.warning("Delete ignored for unknown or expired receipt handle")
            return False
        return True

    async def release(self, receipt_handle: str) -> bool:
        with self._transaction():
            entry = self._in_flight.pop(receipt_handle, None)
            if entry is not None:
                message, _ = entry
                message.receipt_handle = None
                self._visible[message.message_id] = message
        return entry is not None

    async def dead_letters(self) -> List[QueueMessage]:
        with self._transaction():
            return [replace(m) for m in self._dead.values()]

    async def redrive_dead_letters(self, message_ids: Optional[List[str]] = None) -> int:
        moved = 0
        with self._transaction():
            selected = list(self._dead) if message_ids is None else [
                m for m in message_ids if m in self._dead
            ]
            for message_id in selected:
                message = self._dead.pop(message_id)
                message.receive_count = 0
                message.dead_lettered_at = None
                self._visible[message_id] = message
                moved += 1
        if moved:
            logger.info(f"Redrove {moved} dead-lettered message(s)")
        return moved

    async def stats(self) -> QueueStats:
        with self._transaction():
            self._expire_in_flight(self._clock())
            return QueueStats(
                visible=len(self._visible),
                in_flight=len(self._in_flight),
                dead_lettered=len(self._dead),
            )


class FileWorkQueue(InMemoryWorkQueue):
    """
    Work queue persisted to a JSON file between operations.

    Each operation loads the file, applies the change, and writes it back,
    so separate CLI invocations share one queue.
    """

    def __init__(
        self,
        base_path: str | Path = "./orderflow_data",
        max_receive_count: int = 3,
        visibility_timeout: float = 360.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(
            max_receive_count=max_receive_count,
            visibility_timeout=visibility_timeout,
            clock=clock,
        )
        self.path = Path(base_path) / "queue" / "order-queue.json"

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                state = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read queue state {self.path}: {e}") from e

        self._visible = OrderedDict(
            (m["message_id"], QueueMessage.from_dict(m)) for m in state.get("visible", [])
        )
        self._in_flight = {
            entry["message"]["receipt_handle"]: (
                QueueMessage.from_dict(entry["message"]),
                entry["deadline"],
            )
            for entry in state.get("in_flight", [])
        }
        self._dead = OrderedDict(
            (m["message_id"], QueueMessage.from_dict(m)) for m in state.get("dead", [])
        )

    def _save(self) -> None:
        state = {
            "visible": [m.to_dict() for m in self._visible.values()],
            "in_flight": [
                {"message": m.to_dict(), "deadline": deadline}
                for m, deadline in self._in_flight.values()
            ],
            "dead": [m.to_dict() for m in self._dead.values()],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(state, f, indent=2)
            tmp_path.replace(self.path)
        except OSError as e:
            raise StorageError(f"Failed to write queue state {self.path}: {e}") from e
