"""Rich console setup and enhancement progress reporting."""

from __future__ import annotations

import logging
from typing import Any, Callable

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .models import (
    EnhancementEvent,
    EnhancementResult,
    EnhancementTask,
    TaskIdentification,
)

console = Console()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logger with Rich handler."""
    level = logging.DEBUG if verbose else (logging.ERROR if quiet else logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


logger = logging.getLogger("report_enhancer")


# ---------------------------------------------------------------------------
# Event sink
# ---------------------------------------------------------------------------

EventSink = Callable[[EnhancementEvent, Any], None]
"""Observer hook: called with an event kind and its payload."""


def _preview(text: str, limit: int = 80) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= limit else flat[:limit - 3] + "..."


class RichEventSink:
    """Rich-based event sink that renders pipeline progress to the console."""

    def __init__(self, console_: Console | None = None) -> None:
        self.console = console_ or console

    def __call__(self, event: EnhancementEvent, payload: Any) -> None:
        handler = getattr(self, f"on_{EnhancementEvent(event).value}", None)
        if handler is not None:
            handler(payload)

    def on_task_started(self, payload: Any) -> None:
        self.console.rule("[bold blue]IDENTIFYING[/]: scanning report for weak claims")

    def on_tasks(self, identification: TaskIdentification) -> None:
        table = Table(title=f"Enhancement tasks ({len(identification.enhancement_tasks)})")
        table.add_column("ID", style="dim")
        table.add_column("Priority")
        table.add_column("Research task")
        table.add_column("Quote")
        colours = {"high": "red", "medium": "yellow", "low": "green"}
        for task in identification.enhancement_tasks:
            colour = colours.get(task.priority.value, "white")
            table.add_row(
                task.task_id,
                f"[{colour}]{task.priority.value}[/]",
                _preview(task.research_task, 60),
                _preview(task.original_quote, 60),
            )
        self.console.print(table)
        if identification.overall_strategy:
            self.console.print(f"  [dim]Strategy:[/] {identification.overall_strategy}")

    def on_subtask_started(self, task: EnhancementTask) -> None:
        self.console.print(f"  [dim]Sub-agent started:[/] {task.task_id}: {_preview(task.research_task)}")

    def on_subtask_completed(self, result: EnhancementResult) -> None:
        if result.error:
            self.console.print(f"  [red]Sub-agent failed:[/] {result.task_id} ({result.error})")
        elif result.is_modified:
            delta = len(result.enhanced_content) - len(result.original_quote)
            self.console.print(f"  [green]Sub-agent done:[/] {result.task_id} ({delta:+d} chars)")
        else:
            self.console.print(f"  [yellow]No supporting data:[/] {result.task_id}")

    def on_enhancements(self, results: list[EnhancementResult]) -> None:
        modified = sum(1 for r in results if r.is_modified)
        failed = sum(1 for r in results if r.error)
        self.console.print(
            f"  Enhancements: {modified}/{len(results)} modified"
            + (f", [red]{failed} failed[/]" if failed else "")
        )
