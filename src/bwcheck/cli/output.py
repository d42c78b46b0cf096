# Copyright (c) Syntropy Systems
"""Shared console output for bwcheck commands."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from bwcheck.models.results import TestOutcome

if TYPE_CHECKING:
    from bwcheck.models.results import ValidationReport

console = Console()

_OUTCOME_STYLES = {
    TestOutcome.PASS: "green",
    TestOutcome.FAIL: "red",
    TestOutcome.SKIP: "yellow",
    TestOutcome.ERROR: "red",
}


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def outcome_label(outcome: TestOutcome) -> str:
    """Styled label for an outcome."""
    style = _OUTCOME_STYLES[outcome]
    return f"[{style}]{outcome.value.upper()}[/{style}]"


def print_report(report: ValidationReport, name: str = "MBA") -> None:
    """Print per-level results and the overall verdict."""
    console.print("[dim]Results are displayed in (MB)[/dim]")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Schemata", justify="right")
    table.add_column("Avg iMC", justify="right")
    table.add_column("Avg resctrl", justify="right")
    table.add_column("Diff", justify="right")
    table.add_column("Result")

    for level in report.levels:
        verdict = "[green]Pass[/green]" if level.passed else "[red]Fail[/red]"
        diff = f"{level.diff_percent}%"
        if not level.passed:
            diff = f"[red]{diff}[/red]"
        table.add_row(
            str(level.allocation),
            str(level.avg_imc_bw),
            str(level.avg_resc_bw),
            diff,
            verdict,
        )

    console.print(table)
    console.print(f"[dim]Tolerance:[/dim] {report.tolerance_percent}%")

    if report.failed:
        console.print(f"[red]Fail:[/red] Check schemata change using {name}")
        console.print("At least one test failed")
    else:
        console.print(f"[green]Pass:[/green] Check schemata change using {name}")
