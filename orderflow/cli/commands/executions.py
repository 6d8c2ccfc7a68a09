"""Workflow execution inspection commands."""

from typing import Optional

import click

from orderflow.cli.output.formatters import (
    format_json,
    format_key_value,
    format_plain,
    format_table,
    print_error,
    print_info,
)
from orderflow.cli.utils.app import app_from_context
from orderflow.cli.utils.async_helpers import async_command
from orderflow.storage.schemas import ExecutionOutcome


def _duration(execution) -> str:
    if execution.completed_at:
        seconds = (execution.completed_at - execution.started_at).total_seconds()
        return f"{seconds:.1f}s"
    return "-"


@click.group(name="executions")
def executions() -> None:
    """Inspect workflow executions (list, show)."""
    pass


@executions.command(name="list")
@click.option("--order", "order_id", help="Filter by order id")
@click.option(
    "--outcome",
    type=click.Choice([o.value for o in ExecutionOutcome], case_sensitive=False),
    help="Filter by outcome",
)
@click.option(
    "--limit",
    type=int,
    default=20,
    help="Maximum number of executions to display (default: 20)",
)
@click.pass_context
@async_command
async def list_executions(
    ctx: click.Context,
    order_id: Optional[str],
    outcome: Optional[str],
    limit: int,
) -> None:
    """
    List workflow executions, newest first.

    Examples:

        orderflow executions list
        orderflow executions list --outcome failed
    """
    output = ctx.obj["output"]
    app = app_from_context(ctx)

    execution_list = await app.stores.executions.list_executions(
        order_id=order_id,
        outcome=ExecutionOutcome(outcome.lower()) if outcome else None,
        limit=limit,
    )

    if output == "json":
        format_json([e.to_dict() for e in execution_list])
        return

    if not execution_list:
        print_info("No executions found")
        return

    if output == "plain":
        format_plain([e.execution_id for e in execution_list])
    else:
        format_table(
            [
                {
                    "Execution ID": e.execution_id,
                    "Order ID": e.order_id,
                    "State": e.state.value,
                    "Outcome": e.outcome.value,
                    "Reason": e.failure_reason.value if e.failure_reason else "-",
                    "Duration": _duration(e),
                }
                for e in execution_list
            ],
            ["Execution ID", "Order ID", "State", "Outcome", "Reason", "Duration"],
            title="Executions",
        )


@executions.command(name="show")
@click.argument("execution_id")
@click.option("--events", "show_events", is_flag=True, help="Include the event log")
@click.pass_context
@async_command
async def show_execution(ctx: click.Context, execution_id: str, show_events: bool) -> None:
    """
    Show an execution and, optionally, its event log.

    Args:
        EXECUTION_ID: Execution identifier

    Examples:

        orderflow executions show exec_0f3a9c2b1d4e5f60 --events
    """
    output = ctx.obj["output"]
    app = app_from_context(ctx)

    execution = await app.stores.executions.get_execution(execution_id)
    if execution is None:
        print_error(f"Execution '{execution_id}' not found")
        raise click.Abort()

    events = await app.stores.executions.get_events(execution_id) if show_events else []

    if output == "json":
        data = execution.to_dict()
        if show_events:
            data["events"] = [event.to_dict() for event in events]
        format_json(data)
        return

    if output == "plain":
        format_plain([f"{execution.execution_id} {execution.state.value} {execution.outcome.value}"])
        format_plain([f"{event.sequence}: {event.type.value}" for event in events])
        return

    format_key_value(
        {
            "Order ID": execution.order_id,
            "State": execution.state.value,
            "Outcome": execution.outcome.value,
            "Failure Reason": execution.failure_reason.value if execution.failure_reason else None,
            "Failed State": execution.failed_state.value if execution.failed_state else None,
            "Error": execution.error,
            "Started": execution.started_at,
            "Completed": execution.completed_at,
            "Duration": _duration(execution),
            "Outputs": execution.outputs,
        },
        title=f"Execution: {execution_id}",
    )

    if show_events:
        format_table(
            [
                {
                    "Seq": event.sequence,
                    "Type": event.type.value,
                    "Time": event.timestamp.strftime("%H:%M:%S.%f")[:-3],
                    "Step": event.data.get("step_name", "-"),
                }
                for event in events
            ],
            ["Seq", "Type", "Time", "Step"],
            title="Event Log",
        )
