"""
ExecutionContext - what a workflow step can reach while it runs.

Uses Python's contextvars for implicit context passing: the engine sets the
context before driving an execution, and steps call get_context() to reach
collaborators (stores, channel, payment gateway, config and secret sources).
Each execution runs in its own asyncio task, so concurrent executions never
see each other's context.

Usage:
    from orderflow.context import get_context

    async def my_step(order, results):
        ctx = get_context()
        limit = await ctx.config_source.get_int("max-items-per-order")
        ...
"""

from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from orderflow.core.retry import RetryDelay, execute_with_retries
from orderflow.messaging.notifications import NotificationChannel
from orderflow.payments import PaymentGateway
from orderflow.sources import ConfigSource, SecretSource
from orderflow.storage.base import OrderStore, ReceiptStore


@dataclass
class Collaborators:
    """External services the workflow talks to."""

    order_store: OrderStore
    receipt_store: ReceiptStore
    notifications: NotificationChannel
    payments: PaymentGateway
    config_source: ConfigSource
    secret_source: SecretSource


@dataclass
class ExecutionContext:
    """
    Per-execution view of the collaborators plus retry policy.

    Attributes:
        execution_id: Execution being driven
        order_id: Order the execution belongs to
        collaborators: External services
        max_retries: Retries for retryable adapter failures
        retry_delay: Backoff strategy
        on_retry: Hook the engine uses to log retries to the event log
    """

    execution_id: str
    order_id: str
    collaborators: Collaborators
    max_retries: int = 3
    retry_delay: RetryDelay = "exponential"
    on_retry: Optional[Callable[[str, int, float, BaseException], Awaitable[None]]] = field(
        default=None, repr=False
    )

    @property
    def order_store(self) -> OrderStore:
        return self.collaborators.order_store

    @property
    def receipt_store(self) -> ReceiptStore:
        return self.collaborators.receipt_store

    @property
    def notifications(self) -> NotificationChannel:
        return self.collaborators.notifications

    @property
    def payments(self) -> PaymentGateway:
        return self.collaborators.payments

    @property
    def config_source(self) -> ConfigSource:
        return self.collaborators.config_source

    @property
    def secret_source(self) -> SecretSource:
        return self.collaborators.secret_source

    async def call_with_retries(
        self, name: str, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any
    ) -> Any:
        """Call an adapter under this execution's retry policy."""

        async def _on_retry(attempt: int, delay: float, error: BaseException) -> None:
            if self.on_retry is not None:
                await self.on_retry(name, attempt, delay, error)

        return await execute_with_retries(
            func,
            *args,
            name=name,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            on_retry=_on_retry,
            **kwargs,
        )


_current_context: ContextVar[Optional[ExecutionContext]] = ContextVar(
    "execution_context", default=None
)


def get_context() -> ExecutionContext:
    """
    Get the current execution context (implicit).

    Raises:
        RuntimeError: If called outside of a workflow execution
    """
    ctx = _current_context.get()
    if ctx is None:
        raise RuntimeError(
            "No execution context available. "
            "Workflow steps must run inside an execution driven by the engine."
        )
    return ctx


def has_context() -> bool:
    """Check if an execution context is currently available."""
    return _current_context.get() is not None


def set_context(ctx: Optional[ExecutionContext]) -> Token:
    """
    Set the current execution context.

    Returns:
        Token that can be used to reset the context
    """
    return _current_context.set(ctx)


def reset_context(token: Token) -> None:
    """Reset the context to its previous value."""
    _current_context.reset(token)
