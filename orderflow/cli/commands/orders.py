"""Order submission and lookup commands."""

import json
from typing import List, Optional

import click

from orderflow.cli.output.formatters import (
    format_json,
    format_key_value,
    format_plain,
    format_table,
    print_error,
    print_info,
    print_success,
)
from orderflow.cli.utils.app import app_from_context
from orderflow.cli.utils.async_helpers import async_command
from orderflow.core.exceptions import OrderFlowError, OrderNotFoundError, ValidationError


@click.group(name="orders")
def orders() -> None:
    """Submit and inspect orders."""
    pass


@orders.command(name="submit")
@click.option("--customer", "-c", "customer_name", help="Customer name")
@click.option("--item", "-i", "items", multiple=True, help="Item identifier (repeatable)")
@click.option("--total", "-t", type=str, help="Order total, e.g. 49.99")
@click.option(
    "--json",
    "payload_json",
    help='Full payload as JSON, e.g. \'{"customerName": "Alice", "items": ["widget"], "total": 9.5}\'',
)
@click.option(
    "--process",
    is_flag=True,
    help="Drain the queue after submitting so the order is processed immediately",
)
@click.pass_context
@async_command
async def submit_order(
    ctx: click.Context,
    customer_name: Optional[str],
    items: List[str],
    total: Optional[str],
    payload_json: Optional[str],
    process: bool,
) -> None:
    """
    Submit a new order.

    Examples:

        # Submit with options
        orderflow orders submit -c Alice -i widget -i gadget -t 49.99

        # Submit a raw payload and process it right away
        orderflow orders submit --json '{"customerName": "Alice", "items": ["widget"], "total": 9.5}' --process
    """
    output = ctx.obj["output"]

    if payload_json:
        try:
            payload = json.loads(payload_json)
        except json.JSONDecodeError as e:
            print_error(f"Invalid JSON payload: {e}")
            raise click.Abort()
    else:
        payload = {"customerName": customer_name or "", "items": list(items), "total": total}

    app = app_from_context(ctx)

    try:
        order_id = await app.service.submit_order(payload)
        summary = None
        if process:
            result = await app.consumer.drain()
            summary = result.summary()
    except ValidationError as e:
        print_error(f"{e}")
        for reason in e.reasons:
            print_error(f"  {reason}")
        raise click.Abort()
    except OrderFlowError as e:
        print_error(f"Failed to submit order: {e}")
        if ctx.obj["verbose"]:
            raise
        raise click.Abort()

    if output == "json":
        data = {"orderId": order_id}
        if summary is not None:
            data["summary"] = summary
        format_json(data)
    elif output == "plain":
        format_plain([order_id])
    else:
        print_success(f"Order submitted: {order_id}")
        if summary is not None:
            format_table(
                [{"Order ID": r["orderId"], "Status": r["status"]} for r in summary["results"]],
                ["Order ID", "Status"],
                title=f"Processed {summary['processed']} order(s)",
            )


@orders.command(name="get")
@click.argument("order_id")
@click.pass_context
@async_command
async def get_order(ctx: click.Context, order_id: str) -> None:
    """
    Show an order.

    Args:
        ORDER_ID: Order identifier

    Examples:

        orderflow orders get 3f2c7d0e-...
    """
    output = ctx.obj["output"]
    app = app_from_context(ctx)

    try:
        record = await app.service.fetch_order_record(order_id)
    except OrderNotFoundError:
        print_error(f"Order '{order_id}' not found")
        raise click.Abort()

    if output == "json":
        format_json(record)
    elif output == "plain":
        format_plain([f"{record['orderId']} {record['status']}"])
    else:
        format_key_value(record, title=f"Order: {order_id}")


@orders.command(name="list")
@click.option(
    "--limit",
    type=int,
    default=20,
    help="Maximum number of orders to display (default: 20)",
)
@click.pass_context
@async_command
async def list_orders(ctx: click.Context, limit: int) -> None:
    """
    List orders, newest first.

    Examples:

        orderflow orders list --limit 10
    """
    output = ctx.obj["output"]
    app = app_from_context(ctx)

    order_list = await app.stores.orders.list_orders(limit=limit)
    if not order_list:
        print_info("No orders found")
        return

    if output == "json":
        format_json([order.to_dict() for order in order_list])
    elif output == "plain":
        format_plain([order.order_id for order in order_list])
    else:
        format_table(
            [
                {
                    "Order ID": order.order_id,
                    "Customer": order.customer_name,
                    "Items": len(order.items),
                    "Total": f"{order.total:.2f}",
                    "Status": order.status.value,
                    "Created": order.created_at,
                }
                for order in order_list
            ],
            ["Order ID", "Customer", "Items", "Total", "Status", "Created"],
            title="Orders",
        )
