"""
File-system storage backends.

Layout under base_path:
    orders/<order_id>.json          order records (external layout)
    receipts/<key>                  receipt blobs, plus <key>.meta sidecars
    executions/<execution_id>.json  execution records
    executions/_active.json         order_id -> active execution_id
    events/<execution_id>.jsonl     append-only event log

Writes go through a temp file and os.replace so readers never observe a
partial record. Suitable for the CLI and single-host deployments.
"""

import json
import os
import threading
from pathlib import Path
from typing import Any

from orderflow.core.exceptions import StorageError, WorkflowAlreadyRunningError
from orderflow.engine.events import Event
from orderflow.storage.base import ExecutionStore, OrderStore, ReceiptStore
from orderflow.storage.schemas import (
    ExecutionOutcome,
    Order,
    ReceiptArtifact,
    WorkflowExecution,
)

META_SUFFIX = ".meta"


def _atomic_write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        with open(tmp_path, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e}") from e


def _read_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        raise StorageError(f"Failed to read {path}: {e}") from e


def _safe_name(name: str) -> str:
    if not name or "/" in name or "\\" in name or name.startswith("."):
        raise ValueError(f"Invalid storage identifier: {name!r}")
    return name


class FileOrderStore(OrderStore):
    """Order table stored as one JSON document per order."""

    def __init__(self, base_path: str | Path = "./orderflow_data") -> None:
        self.base_path = Path(base_path)
        self._dir = self.base_path / "orders"
        self._lock = threading.RLock()

    def _path(self, order_id: str) -> Path:
        return self._dir / f"{_safe_name(order_id)}.json"

    async def put(self, order: Order) -> None:
        data = json.dumps(order.to_dict(), indent=2).encode("utf-8")
        with self._lock:
            _atomic_write(self._path(order.order_id), data)

    async def get(self, order_id: str) -> Order | None:
        with self._lock:
            data = _read_json(self._path(order_id))
        return Order.from_dict(data) if data else None

    async def list_orders(self, limit: int = 100) -> list[Order]:
        with self._lock:
            if not self._dir.exists():
                return []
            orders = [Order.from_dict(_read_json(p)) for p in self._dir.glob("*.json")]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders[:limit]


class FileReceiptStore(ReceiptStore):
    """Receipt blobs stored as files; content type kept in a sidecar."""

    def __init__(self, base_path: str | Path = "./orderflow_data") -> None:
        self.base_path = Path(base_path)
        self._dir = self.base_path / "blobs"
        self._lock = threading.RLock()

    def _path(self, key: str) -> Path:
        parts = key.split("/")
        if not key or any(p in ("", ".", "..") for p in parts) or key.endswith(META_SUFFIX):
            raise ValueError(f"Invalid receipt key: {key!r}")
        return self._dir.joinpath(*parts)

    async def put(self, artifact: ReceiptArtifact) -> None:
        path = self._path(artifact.key)
        with self._lock:
            _atomic_write(path, artifact.content)
            _atomic_write(
                path.with_name(path.name + META_SUFFIX),
                json.dumps({"content_type": artifact.content_type}).encode("utf-8"),
            )

    async def get(self, key: str) -> ReceiptArtifact | None:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                content = path.read_bytes()
            except OSError as e:
                raise StorageError(f"Failed to read {path}: {e}") from e
            meta = _read_json(path.with_name(path.name + META_SUFFIX)) or {}
        return ReceiptArtifact(
            key=key,
            content=content,
            content_type=meta.get("content_type", "application/octet-stream"),
        )

    async def list_keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            if not self._dir.exists():
                return []
            keys = [
                p.relative_to(self._dir).as_posix()
                for p in self._dir.rglob("*")
                if p.is_file() and not p.name.endswith(META_SUFFIX) and not p.name.startswith(".")
            ]
        return sorted(k for k in keys if k.startswith(prefix))


class FileExecutionStore(ExecutionStore):
    """Execution records and event log kept on the local file system."""

    def __init__(self, base_path: str | Path = "./orderflow_data") -> None:
        self.base_path = Path(base_path)
        self._executions_dir = self.base_path / "executions"
        self._events_dir = self.base_path / "events"
        self._active_path = self._executions_dir / "_active.json"
        self._lock = threading.RLock()

    def _execution_path(self, execution_id: str) -> Path:
        return self._executions_dir / f"{_safe_name(execution_id)}.json"

    def _events_path(self, execution_id: str) -> Path:
        return self._events_dir / f"{_safe_name(execution_id)}.jsonl"

    def _load_active(self) -> dict[str, str]:
        return _read_json(self._active_path) or {}

    def _write_execution(self, execution: WorkflowExecution) -> None:
        data = json.dumps(execution.to_dict(), indent=2, default=str).encode("utf-8")
        _atomic_write(self._execution_path(execution.execution_id), data)

    # Execution Operations

    async def create_execution(self, execution: WorkflowExecution) -> None:
        with self._lock:
            active = self._load_active()
            active_id = active.get(execution.order_id)
            if active_id is not None:
                raise WorkflowAlreadyRunningError(execution.order_id, active_id)
            if self._execution_path(execution.execution_id).exists():
                raise ValueError(f"Execution {execution.execution_id} already exists")
            self._write_execution(execution)
            active[execution.order_id] = execution.execution_id
            _atomic_write(self._active_path, json.dumps(active, indent=2).encode("utf-8"))

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        with self._lock:
            data = _read_json(self._execution_path(execution_id))
        return WorkflowExecution.from_dict(data) if data else None

    async def get_active_execution(self, order_id: str) -> WorkflowExecution | None:
        with self._lock:
            execution_id = self._load_active().get(order_id)
            if execution_id is None:
                return None
            data = _read_json(self._execution_path(execution_id))
        return WorkflowExecution.from_dict(data) if data else None

    async def save_execution(self, execution: WorkflowExecution) -> None:
        with self._lock:
            self._write_execution(execution)
            if execution.is_terminal:
                active = self._load_active()
                if active.get(execution.order_id) == execution.execution_id:
                    del active[execution.order_id]
                    _atomic_write(
                        self._active_path, json.dumps(active, indent=2).encode("utf-8")
                    )

    async def list_executions(
        self,
        order_id: str | None = None,
        outcome: ExecutionOutcome | None = None,
        limit: int = 100,
    ) -> list[WorkflowExecution]:
        with self._lock:
            if not self._executions_dir.exists():
                return []
            executions = [
                WorkflowExecution.from_dict(_read_json(p))
                for p in self._executions_dir.glob("*.json")
                if not p.name.startswith("_")
            ]

        if order_id:
            executions = [e for e in executions if e.order_id == order_id]
        if outcome:
            executions = [e for e in executions if e.outcome == outcome]

        executions.sort(key=lambda e: e.started_at, reverse=True)
        return executions[:limit]

    # Event Log Operations

    async def record_event(self, event: Event) -> None:
        with self._lock:
            path = self._events_path(event.execution_id)
            path.parent.mkdir(parents=True, exist_ok=True)
            event.sequence = len(self._read_events(path))
            try:
                with open(path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(event.to_dict(), default=str) + "\n")
            except OSError as e:
                raise StorageError(f"Failed to append to {path}: {e}") from e

    async def get_events(self, execution_id: str) -> list[Event]:
        with self._lock:
            events = self._read_events(self._events_path(execution_id))
        events.sort(key=lambda e: e.sequence or 0)
        return events

    @staticmethod
    def _read_events(path: Path) -> list[Event]:
        if not path.exists():
            return []
        with open(path, encoding="utf-8") as f:
            return [Event.from_dict(json.loads(line)) for line in f if line.strip()]
