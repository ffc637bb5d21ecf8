"""Rich rendering of session notifications."""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.table import Table

from ..engine import ScrapedProduct
from ..orchestrator import Notification, NotificationKind


def render_results_table(
    title: str, results: list[ScrapedProduct], limit: int | None = None
) -> Table:
    shown = results[:limit] if limit else results
    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Item", style="cyan", no_wrap=True)
    table.add_column("Price", style="green", justify="right")
    table.add_column("URL", style="magenta", overflow="fold")
    for product in shown:
        price = f"{product.price:.2f}" if product.price is not None else "-"
        table.add_row(str(product.position), product.item_id, price, product.product_url)
    if limit and len(results) > limit:
        table.caption = f"{len(results) - limit} more not shown"
    return table


class ConsoleNotifier:
    """Print product groups for the active session; drop everything else."""

    def __init__(self, console: Console | None = None, display_limit: int = 5) -> None:
        self.console = console or Console()
        self.display_limit = display_limit
        self.active_session: str | None = None
        self.groups = 0
        self.discarded = 0

    def notify(self, notification: Notification) -> None:
        if notification.kind is NotificationKind.STARTED:
            self.active_session = notification.session_id
            self.groups = 0
            self.console.print(f"Analysing frame (session {notification.session_id})", style="dim")
            return
        if notification.session_id != self.active_session:
            self.discarded += 1
            return

        if notification.kind is NotificationKind.PRODUCT_GROUP_READY:
            self.groups += 1
            product = notification.product
            name = product.name if product else "product"
            title = f"{name} · {notification.provider}"
            self.console.print(
                render_results_table(title, notification.results, self.display_limit)
            )
        elif notification.kind is NotificationKind.COMPLETE:
            self.console.print(f"Analysis complete: {self.groups} product group(s).", style="green")
        elif notification.kind is NotificationKind.ERROR:
            self.console.print(f"Analysis failed: {notification.error}", style="red")
        elif notification.kind is NotificationKind.CANCELLED:
            self.console.print("Analysis cancelled.", style="yellow")


__all__ = ["ConsoleNotifier", "render_results_table"]
