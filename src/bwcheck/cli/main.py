# Copyright (c) Syntropy Systems
"""Main CLI entry point for bwcheck."""

import typer

from bwcheck.cli.check import check
from bwcheck.cli.features import features
from bwcheck.cli.init_cmd import init
from bwcheck.cli.run_cmd import run
from bwcheck.cli.schedule_cmd import schedule

app = typer.Typer(
    name="bwcheck",
    help=(
        "Memory bandwidth allocation validation. Tighten the MB schemata, "
        "run a benchmark, compare iMC and resctrl bandwidth."
    ),
    no_args_is_help=True,
    add_completion=False,
)

# Register commands
_ = app.command()(init)
_ = app.command(
    context_settings={"allow_extra_args": True, "allow_interspersed_args": False}
)(run)
_ = app.command()(check)
_ = app.command()(schedule)
_ = app.command()(features)


if __name__ == "__main__":
    app()
