# Copyright (c) Syntropy Systems
"""bwcheck schedule command."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from bwcheck.cli.output import console
from bwcheck.config import load_config
from bwcheck.schedule import schedule_levels


def schedule(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Config file (default: nearest .bwcheck/config.yaml)",
    ),
) -> None:
    """Show the allocation levels an MBA run applies, in order."""
    config = load_config(config_path)
    try:
        levels = schedule_levels(
            config.allocation_max, config.allocation_min, config.allocation_step
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(" ".join(str(level) for level in levels))
    console.print(
        f"[dim]{len(levels)} levels x {config.num_of_runs} runs = "
        f"{len(levels) * config.num_of_runs} runs[/dim]"
    )
