"""orderflow CLI - Submit orders, drive the queue, and inspect executions."""

from typing import Optional

import click
from loguru import logger

from orderflow import __version__
from orderflow.config import load_config
from orderflow.observability.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="orderflow")
@click.option(
    "--storage",
    type=click.Choice(["file", "memory"], case_sensitive=False),
    envvar="ORDERFLOW_STORAGE_BACKEND",
    help="Storage backend type (default: file)",
)
@click.option(
    "--storage-path",
    envvar="ORDERFLOW_STORAGE_PATH",
    help="Storage path for file backend (default: ./orderflow_data)",
)
@click.option(
    "--output",
    type=click.Choice(["table", "json", "plain"], case_sensitive=False),
    default="table",
    help="Output format (default: table)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging",
)
@click.pass_context
def main(
    ctx: click.Context,
    storage: Optional[str],
    storage_path: Optional[str],
    output: str,
    verbose: bool,
) -> None:
    """
    orderflow CLI - Submit orders, drive the queue, and inspect executions.

    Examples:

        # Submit an order
        orderflow orders submit -c Alice -i widget -i gadget -t 49.99

        # Process everything on the queue
        orderflow queue process

        # Inspect and replay dead letters
        orderflow queue dlq
        orderflow queue redrive

        # Show an execution with its event log
        orderflow executions show exec_0f3a9c2b1d4e5f60 --events

    Configuration:

        You can configure orderflow via:
        - CLI flags (highest priority)
        - Environment variables (ORDERFLOW_STORAGE_BACKEND, ORDERFLOW_MAX_RETRIES, etc.)
        - Config file (orderflow.config.yaml)
    """
    if verbose:
        logger.enable("orderflow")
        configure_logging(level="DEBUG")
        logger.info("Verbose logging enabled")
    else:
        logger.disable("orderflow")

    config = load_config()

    ctx.ensure_object(dict)
    ctx.obj["storage_type"] = storage.lower() if storage else None
    ctx.obj["storage_path"] = storage_path
    ctx.obj["output"] = output.lower()
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose


# Import and register commands
from orderflow.cli.commands.executions import executions  # noqa: E402
from orderflow.cli.commands.orders import orders  # noqa: E402
from orderflow.cli.commands.queue import queue  # noqa: E402

main.add_command(orders)
main.add_command(queue)
main.add_command(executions)


__all__ = ["main"]
