"""
Output formatting module for the swatprep CLI.

This module handles formatted output for the CLI, supporting both:
- Human-readable text output with Rich formatting
- Machine-readable JSON output for automation
"""

import json
import logging
import sys
from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.pipeline import StagePlan, StageResult

logger = logging.getLogger(__name__)


@dataclass
class ArtifactStatus:
    """One declared artifact and whether it exists on disk."""

    stage: str
    key: str
    path: str
    type: str
    present: bool


class OutputFormatter:
    """Handles CLI output formatting for text and JSON modes."""

    def __init__(self, output_format: str = "text", quiet: bool = False) -> None:
        """
        Initialize the output formatter.

        Args:
            output_format: Output format ("text" or "json")
            quiet: Suppress progress output

        Raises:
            ValueError: If output_format is not "text" or "json"
        """
        if output_format not in ("text", "json"):
            raise ValueError(f"output_format must be 'text' or 'json', got '{output_format}'")

        self.output_format = output_format
        self.quiet = quiet
        self.console = Console(file=sys.stdout)

    def print_results(self, results: list[StageResult]) -> None:
        """Print the outcome of a pipeline run."""
        if self.output_format == "json":
            output = [
                {
                    "stage": r.name,
                    "status": r.status,
                    "reason": r.reason,
                    "duration": round(r.duration, 3),
                    "outputs": [str(p) for p in r.outputs],
                }
                for r in results
            ]
            print(json.dumps(output, indent=2))
            return

        if self.quiet:
            return

        table = Table(title="Pipeline run", show_header=True, header_style="bold magenta")
        table.add_column("Stage", style="cyan")
        table.add_column("Status")
        table.add_column("Reason")
        table.add_column("Time", justify="right")

        for r in results:
            status = "[green]ran[/green]" if r.status == "ran" else "[dim]skipped[/dim]"
            duration = f"{r.duration:.1f}s" if r.status == "ran" else ""
            table.add_row(r.name, status, r.reason, duration)

        self.console.print(table)
        ran = sum(1 for r in results if r.status == "ran")
        self.console.print(f"\n[bold green]Complete![/bold green] {ran} ran, {len(results) - ran} skipped")

    def print_plan(self, plans: list[StagePlan]) -> None:
        """Print which stages a run would execute."""
        if self.output_format == "json":
            output = [{"stage": p.stage.name, "will_run": p.will_run, "reason": p.reason} for p in plans]
            print(json.dumps(output, indent=2))
            return

        table = Table(title="Dry run", show_header=True, header_style="bold magenta")
        table.add_column("Stage", style="cyan")
        table.add_column("Action")
        table.add_column("Reason")

        for p in plans:
            action = "[yellow]run[/yellow]" if p.will_run else "[dim]skip[/dim]"
            table.add_row(p.stage.name, action, p.reason)

        self.console.print(table)

    def print_status(self, rows: list[ArtifactStatus]) -> None:
        """Print declared artifacts with presence flags."""
        if self.output_format == "json":
            print(json.dumps([row.__dict__ for row in rows], indent=2))
            return

        if not rows:
            self.console.print("[yellow]No stages declared yet.[/yellow]")
            return

        table = Table(title="Declared artifacts", show_header=True, header_style="bold magenta")
        table.add_column("Stage", style="cyan")
        table.add_column("Key")
        table.add_column("Type", style="dim")
        table.add_column("Path")
        table.add_column("Present", justify="center")

        for row in rows:
            present = "[green]✓[/green]" if row.present else "[red]✗[/red]"
            table.add_row(row.stage, row.key, row.type, row.path, present)

        self.console.print(table)

    def print_error(self, message: str, hint: str | None = None) -> None:
        """
        Print error with an optional hint.

        Args:
            message: The main error message
            hint: Optional hint for fixing the error
        """
        if self.output_format == "json":
            error_obj = {"error": message}
            if hint:
                error_obj["hint"] = hint
            print(json.dumps(error_obj, indent=2))
        else:
            self.console.print(f"[red]Error:[/red] {escape(message)}")
            if hint:
                self.console.print(f"[yellow]Fix:[/yellow] {hint}")

        logger.debug(f"Printed error: {message}")
