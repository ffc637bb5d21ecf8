"""Terminal presentation helpers."""

from .console import ConsoleNotifier, render_results_table

__all__ = ["ConsoleNotifier", "render_results_table"]
