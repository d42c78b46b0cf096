# Copyright (c) Syntropy Systems
"""bwcheck check command."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from bwcheck.cli.output import console, print_report, setup_logging
from bwcheck.config import load_config
from bwcheck.errors import BwcheckError
from bwcheck.models.results import TestOutcome
from bwcheck.results import read_results
from bwcheck.schedule import schedule_levels
from bwcheck.validate import validate


def check(
    result_file: Path = typer.Argument(..., help="Result log written by an MBA run"),
    runs: Optional[int] = typer.Option(
        None,
        "--runs", "-r",
        help="Runs per allocation level (default from config)",
    ),
    tolerance: Optional[int] = typer.Option(
        None,
        "--tolerance",
        help="Maximum difference in percent (default from config)",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Config file (default: nearest .bwcheck/config.yaml)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Validate an existing result log without touching the hardware.

    Example:
        bwcheck check result_mba --runs 5 --tolerance 8

    """
    setup_logging(verbose)
    config = load_config(config_path)
    repeat_count = runs if runs is not None else config.num_of_runs
    tolerance_percent = tolerance if tolerance is not None else config.max_diff_percent

    try:
        levels = schedule_levels(
            config.allocation_max, config.allocation_min, config.allocation_step
        )
        records = read_results(result_file, max_records=len(levels) * repeat_count)
        report = validate(records, levels, repeat_count, tolerance_percent)
    except (BwcheckError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(TestOutcome.ERROR.exit_code) from e

    if as_json:
        console.print_json(report.model_dump_json())
    else:
        print_report(report)

    outcome = TestOutcome.FAIL if report.failed else TestOutcome.PASS
    raise typer.Exit(outcome.exit_code)
