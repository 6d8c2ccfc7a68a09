"""
Observability for orderflow.

Logging:
    - configure_logging(): Configure loguru sinks
    - configure_logging_from_env(): Configure from ORDERFLOW_LOG_* variables
    - execution_logging_context(): Tag records with the running execution
    - step_logging_context(): Tag records with the running step
"""

from orderflow.observability.logging import (
    configure_logging,
    configure_logging_from_env,
    execution_logging_context,
    step_logging_context,
)

__all__ = [
    "configure_logging",
    "configure_logging_from_env",
    "execution_logging_context",
    "step_logging_context",
]
