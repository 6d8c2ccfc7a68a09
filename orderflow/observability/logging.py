"""
Loguru setup for orderflow.

Every record emitted while an execution runs carries the execution id and
order id; records from inside a step also carry the step name and attempt,
and records from the queue consumer carry the message id. Console output
shows those keys as a trailing ``key=value`` suffix, JSON output groups them
under ``context``.

Handlers configure logging from ORDERFLOW_LOG_* variables on cold start;
the CLI configures it from --verbose.
"""

import json
import os
import sys
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

from loguru import logger

CONTEXT_KEYS = ("execution_id", "order_id", "step_name", "attempt", "message_id")

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>{extra[_suffix]}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message}{extra[_suffix]}"

# Applied to every file sink
FILE_ROTATION = {"rotation": "100 MB", "retention": "30 days", "compression": "gz"}

RecordFilter = Callable[[Dict[str, Any]], bool]


def _context_of(record: Dict[str, Any]) -> Dict[str, Any]:
    return {key: record["extra"][key] for key in CONTEXT_KEYS if key in record["extra"]}


def _suffix_filter(show_context: bool) -> RecordFilter:
    """Attach the rendered context suffix used by the text formats."""

    def _filter(record: Dict[str, Any]) -> bool:
        context = _context_of(record) if show_context else {}
        record["extra"]["_suffix"] = (
            " | " + " ".join(f"{k}={v}" for k, v in context.items()) if context else ""
        )
        return True

    return _filter


def _json_filter(show_context: bool) -> RecordFilter:
    """Replace the message with its JSON rendering."""

    def _filter(record: Dict[str, Any]) -> bool:
        record["message"] = _format_for_json(record, show_context)
        return True

    return _filter


def _to_json_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_json_value(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def _format_for_json(record: Dict[str, Any], show_context: bool = True) -> str:
    """
    Render a record as one JSON object.

    Context keys are grouped under "context", other bound values under
    "extra"; keys starting with an underscore are internal and dropped.
    Exceptions are summarized by type and value.
    """
    document: Dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    context = _context_of(record)
    if show_context and context:
        document["context"] = context

    extra = {
        key: _to_json_value(value)
        for key, value in record["extra"].items()
        if key not in CONTEXT_KEYS and not key.startswith("_")
    }
    if extra:
        document["extra"] = extra

    exception = record["exception"]
    if exception is not None:
        document["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
            "traceback": exception.traceback is not None,
        }

    return json.dumps(document, default=str)


def configure_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_logs: bool = False,
    show_context: bool = True,
) -> None:
    """
    Replace all loguru sinks with orderflow's.

    Args:
        level: Minimum level for every sink
        log_file: Also write to this file, rotated at 100 MB
        json_logs: One JSON object per record instead of text
        show_context: Include execution/step/message context
    """
    logger.remove()

    if json_logs:
        record_filter = _json_filter(show_context)
        logger.add(sys.stderr, format="{message}", level=level, colorize=False, filter=record_filter)
    else:
        record_filter = _suffix_filter(show_context)
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True, filter=record_filter)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format="{message}" if json_logs else FILE_FORMAT,
            level=level,
            filter=record_filter,
            **FILE_ROTATION,
        )

    logger.debug(f"orderflow logging configured at level {level}")


def configure_logging_from_env() -> None:
    """
    Configure logging from the environment.

    ORDERFLOW_LOG_LEVEL (default INFO), ORDERFLOW_LOG_FORMAT (json|console),
    ORDERFLOW_LOG_FILE, ORDERFLOW_LOG_CONTEXT (true|false).
    """
    configure_logging(
        level=os.getenv("ORDERFLOW_LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("ORDERFLOW_LOG_FILE") or None,
        json_logs=os.getenv("ORDERFLOW_LOG_FORMAT", "console").lower() == "json",
        show_context=os.getenv("ORDERFLOW_LOG_CONTEXT", "true").lower() in ("true", "1", "yes"),
    )


@contextmanager
def execution_logging_context(execution_id: str, order_id: str) -> Iterator[None]:
    """Tag every record logged in scope with the execution and order ids."""
    with logger.contextualize(execution_id=execution_id, order_id=order_id):
        yield


@contextmanager
def step_logging_context(step_name: str, attempt: int = 1) -> Iterator[None]:
    """Tag every record logged in scope with the running step."""
    with logger.contextualize(step_name=step_name, attempt=attempt):
        yield
