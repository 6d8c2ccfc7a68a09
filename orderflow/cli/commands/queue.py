"""Work queue commands: process, stats, dead letters, redrive."""

from typing import List

import click

from orderflow.cli.output.formatters import (
    format_json,
    format_key_value,
    format_plain,
    format_table,
    print_info,
    print_success,
    print_warning,
)
from orderflow.cli.utils.app import app_from_context
from orderflow.cli.utils.async_helpers import async_command


@click.group(name="queue")
def queue() -> None:
    """Process the order queue and manage dead letters."""
    pass


@queue.command(name="process")
@click.option(
    "--once",
    is_flag=True,
    help="Process a single batch instead of draining the queue",
)
@click.option(
    "--max-batches",
    type=int,
    default=None,
    help="Stop after this many batches",
)
@click.pass_context
@async_command
async def process_queue(ctx: click.Context, once: bool, max_batches: int | None) -> None:
    """
    Run workflow executions for queued orders.

    Examples:

        # Drain the queue
        orderflow queue process

        # One batch of up to 10 messages
        orderflow queue process --once
    """
    output = ctx.obj["output"]
    app = app_from_context(ctx)

    if once:
        result = await app.consumer.process_batch()
    else:
        result = await app.consumer.drain(max_batches=max_batches)

    summary = result.summary()
    if output == "json":
        format_json({**summary, "redelivered": result.failed_message_ids})
        return

    if not result:
        print_info("Queue is empty")
        return

    if output == "plain":
        format_plain([f"{r['orderId']} {r['status']}" for r in summary["results"]])
    else:
        format_table(
            [
                {
                    "Message ID": o.message_id,
                    "Order ID": o.order_id or "-",
                    "Status": o.status.value if o.status else "-",
                    "Reason": o.failure_reason.value if o.failure_reason else "-",
                    "Redeliver": "yes" if o.redeliver else "no",
                }
                for o in result.outcomes
            ],
            ["Message ID", "Order ID", "Status", "Reason", "Redeliver"],
            title=f"Processed {summary['processed']} order(s)",
        )


@queue.command(name="stats")
@click.pass_context
@async_command
async def queue_stats(ctx: click.Context) -> None:
    """Show approximate message counts."""
    output = ctx.obj["output"]
    app = app_from_context(ctx)
    stats = await app.queue.stats()

    data = {
        "visible": stats.visible,
        "in_flight": stats.in_flight,
        "dead_lettered": stats.dead_lettered,
    }
    if output == "json":
        format_json(data)
    elif output == "plain":
        format_plain([f"{k} {v}" for k, v in data.items()])
    else:
        format_key_value(data, title="Order Queue")


@queue.command(name="dlq")
@click.pass_context
@async_command
async def list_dead_letters(ctx: click.Context) -> None:
    """List messages on the dead-letter path."""
    output = ctx.obj["output"]
    app = app_from_context(ctx)
    messages = await app.queue.dead_letters()

    if output == "json":
        format_json([m.to_dict() for m in messages])
        return

    if not messages:
        print_info("No dead-lettered messages")
        return

    if output == "plain":
        format_plain([m.message_id for m in messages])
    else:
        format_table(
            [
                {
                    "Message ID": m.message_id,
                    "Receives": m.receive_count,
                    "Sent": m.sent_at,
                    "Dead-lettered": m.dead_lettered_at or "-",
                }
                for m in messages
            ],
            ["Message ID", "Receives", "Sent", "Dead-lettered"],
            title="Dead Letters",
        )


@queue.command(name="redrive")
@click.option(
    "--message-id",
    "message_ids",
    multiple=True,
    help="Redrive only this message (repeatable; default: all)",
)
@click.pass_context
@async_command
async def redrive(ctx: click.Context, message_ids: List[str]) -> None:
    """
    Move dead-lettered messages back to the live queue.

    Examples:

        orderflow queue redrive
        orderflow queue redrive --message-id 6c1d...
    """
    output = ctx.obj["output"]
    app = app_from_context(ctx)
    moved = await app.queue.redrive_dead_letters(list(message_ids) or None)

    if output == "json":
        format_json({"redriven": moved})
    elif output == "plain":
        format_plain([str(moved)])
    elif moved:
        print_success(f"Redrove {moved} message(s)")
    else:
        print_warning("No matching dead-lettered messages")
