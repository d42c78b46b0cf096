# Copyright (c) Syntropy Systems
"""bwcheck init command."""

from pathlib import Path

import typer
from rich.console import Console

from bwcheck.config import CONFIG_DIR_NAME, write_default_config

console = Console()


def init(
    path: Path = typer.Argument(
        Path(),
        help="Directory to initialize (default: current directory)",
    ),
) -> None:
    """Create a .bwcheck directory holding the default configuration."""
    config_dir = path.resolve() / CONFIG_DIR_NAME

    if (config_dir / "config.yaml").exists():
        console.print(f"[yellow]Already initialized:[/yellow] {config_dir}")
        return

    config_path = write_default_config(config_dir)
    console.print(f"[green]Initialized bwcheck config:[/green] {config_path}")
