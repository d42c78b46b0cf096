# Copyright (c) Syntropy Systems
"""bwcheck features command."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from bwcheck.cli.output import console
from bwcheck.config import load_config
from bwcheck.mba import MBA_RESOURCE, MON_FEATURE, MON_RESOURCE
from bwcheck.perf import ImcCounter
from bwcheck.resctrl import ResctrlFS, detect_vendor


def _mark(ok: bool) -> str:
    return "[green]✓[/green]" if ok else "[red]✗[/red]"


def features(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Config file (default: nearest .bwcheck/config.yaml)",
    ),
) -> None:
    """Check which hardware features the tests need are available.

    Verifies:
    - resctrl is mounted
    - the MB resource is supported
    - L3_MON provides mbm_local_bytes
    - perf and the iMC uncore PMUs are present
    """
    config = load_config(config_path)
    resctrl = ResctrlFS(config.resctrl_root)
    imc = ImcCounter(bw_report=config.bw_report)
    issues = 0

    mounted = resctrl.is_mounted()
    console.print(f"{_mark(mounted)} resctrl mounted at {resctrl.root}")
    if not mounted:
        console.print("  Mount with [bold]mount -t resctrl resctrl /sys/fs/resctrl[/bold]")
        issues += 1
    else:
        mb = resctrl.resource_available(MBA_RESOURCE)
        console.print(f"{_mark(mb)} resource {MBA_RESOURCE}")
        mbm = MON_FEATURE in resctrl.mon_features(MON_RESOURCE)
        console.print(f"{_mark(mbm)} {MON_RESOURCE} {MON_FEATURE}")
        issues += (not mb) + (not mbm)

    perf_path = imc.perf_path()
    console.print(f"{_mark(perf_path is not None)} perf: {perf_path or 'not found'}")
    pmus = imc.pmus()
    pmu_names = ", ".join(pmus) if pmus else "none"
    console.print(f"{_mark(bool(pmus))} iMC PMUs: {pmu_names}")
    issues += (perf_path is None) + (not pmus)

    vendor = detect_vendor()
    console.print(f"[dim]•[/dim] CPU vendor: {vendor or 'unknown'}")

    console.print()
    if issues:
        console.print(f"[red]Found {issues} issue(s)[/red]")
    else:
        console.print("[green]All checks passed[/green]")
