# Copyright (c) Syntropy Systems
"""bwcheck run command."""
from __future__ import annotations

import shlex
from pathlib import Path
from typing import Optional

import typer

from bwcheck.cli.output import console, outcome_label, print_report, setup_logging
from bwcheck.config import load_config
from bwcheck.perf import ImcCounter
from bwcheck.resctrl import ResctrlFS, detect_vendor
from bwcheck.suite import (
    UserParams,
    all_tests,
    get_test,
    overall_exit_code,
    run_selected,
)


def run(
    ctx: typer.Context,
    tests: Optional[list[str]] = typer.Option(
        None,
        "--test", "-t",
        help="Test to run (repeatable, default: all)",
    ),
    cpu: Optional[int] = typer.Option(
        None,
        "--cpu",
        help="CPU to bind the benchmark to (default from config)",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Config file (default: nearest .bwcheck/config.yaml)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print reports as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Run resctrl bandwidth tests.

    Use -- to pass a benchmark command instead of the configured one:

        bwcheck run -t MBA --cpu 4 -- stress-ng --stream 1
    """
    setup_logging(verbose)
    config = load_config(config_path)

    try:
        selected = [get_test(name) for name in tests] if tests else all_tests()
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    benchmark = list(ctx.args) or config.benchmark
    params = UserParams(
        config=config,
        resctrl=ResctrlFS(config.resctrl_root),
        imc=ImcCounter(bw_report=config.bw_report),
        benchmark=benchmark,
        cpu=config.cpu if cpu is None else cpu,
        vendor=detect_vendor(),
    )

    if not as_json:
        console.print(f"[dim]benchmark:[/dim] {shlex.join(benchmark)}")
        console.print(f"[dim]cpu:[/dim] {params.cpu}")

    results = run_selected(selected, params)

    for result in results:
        if as_json:
            if result.report is not None:
                console.print_json(result.report.model_dump_json())
            continue

        console.print(f"\n[bold]# Starting {result.name} test[/bold]")
        if result.report is not None:
            print_report(result.report, result.name)
        if result.message:
            console.print(f"  [dim]{result.message}[/dim]")
        console.print(f"{outcome_label(result.outcome)} {result.name}")

    raise typer.Exit(overall_exit_code(results))
