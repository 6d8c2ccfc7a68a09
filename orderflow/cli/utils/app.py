"""Build the application for a CLI invocation."""

import dataclasses

import click

from orderflow.app import OrderFlowApp, create_app

DEFAULT_CLI_STORAGE = "file"


def app_from_context(ctx: click.Context) -> OrderFlowApp:
    """
    Create the app using the global CLI options.

    The backend comes from --storage (or ORDERFLOW_STORAGE_BACKEND) and
    defaults to file so separate invocations share state. The path falls
    back to the configured storage_path.
    """
    config = ctx.obj["config"]
    backend = ctx.obj["storage_type"] or DEFAULT_CLI_STORAGE
    path = ctx.obj["storage_path"] or config.storage_path

    config = dataclasses.replace(config, storage_backend=backend, storage_path=path)
    return create_app(config)
