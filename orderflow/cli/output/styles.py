"""Rich styles and themes for CLI output."""

from rich.theme import Theme

ORDERFLOW_THEME = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "order": "magenta",
    "step": "blue",
    "status.processed": "green",
    "status.complete": "green",
    "status.succeeded": "green",
    "status.running": "blue",
    "status.pending": "cyan",
    "status.failed": "red",
    "status.timed_out": "red",
})

# Status value -> color used by format_status()
STATUS_COLORS = {
    "processed": "green",
    "complete": "green",
    "succeeded": "green",
    "running": "blue",
    "pending": "cyan",
    "failed": "red",
    "timed_out": "red",
}
