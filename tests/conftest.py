# Copyright (c) Syntropy Systems
"""Pytest fixtures for bwcheck tests."""
from __future__ import annotations

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from bwcheck.errors import AllocationWriteError
from bwcheck.models.results import ResultRecord
from bwcheck.resctrl import ResctrlFS
from bwcheck.results import format_result_line

# Store original cwd at module load time
_original_cwd = Path.cwd()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def in_temp_dir(temp_dir: Path) -> Generator[Path, None, None]:
    """Run the test with the temporary directory as cwd."""
    os.chdir(temp_dir)
    yield temp_dir
    # Always return to original cwd
    os.chdir(_original_cwd)


@pytest.fixture
def resctrl_tree(temp_dir: Path) -> Path:
    """A fake resctrl mount with MB and L3_MON mbm_local_bytes."""
    root = temp_dir / "resctrl"
    (root / "info" / "MB").mkdir(parents=True)
    (root / "info" / "L3_MON").mkdir(parents=True)
    (root / "info" / "L3_MON" / "mon_features").write_text(
        "llc_occupancy\nmbm_total_bytes\nmbm_local_bytes\n"
    )
    return root


@pytest.fixture
def cpu_tree(temp_dir: Path) -> Path:
    """A fake /sys/devices/system/cpu with every cpu in cache domain 0."""
    root = temp_dir / "cpu"
    for cpu in sorted(set(range(4)) | os.sched_getaffinity(0)):
        index3 = root / f"cpu{cpu}" / "cache" / "index3"
        index3.mkdir(parents=True)
        (index3 / "id").write_text("0\n")
    return root


@pytest.fixture
def resctrl(resctrl_tree: Path, cpu_tree: Path) -> ResctrlFS:
    """ResctrlFS bound to the fake trees."""
    return ResctrlFS(resctrl_tree, cpu_tree)


class FakeResctrl:
    """Records schemata writes instead of touching the filesystem."""

    def __init__(self, available: bool = True, fail_on: int | None = None) -> None:
        self.available = available
        self.fail_on = fail_on
        self.writes: list[tuple[str, str, int, str]] = []
        self.checks: list[tuple[str, str | None, str | None]] = []

    def feature_available(self, resource, mon_resource=None, mon_feature=None):
        self.checks.append((resource, mon_resource, mon_feature))
        return self.available

    def write_schemata(self, ctrlgrp, value, cpu, resource):
        if self.fail_on is not None and int(value) == self.fail_on:
            msg = f"Cannot write schemata {resource}:0={value}"
            raise AllocationWriteError(msg)
        self.writes.append((ctrlgrp, value, cpu, resource))


class FakeWorkload:
    """Appends scripted (imc, resc) pairs to the result log, one per run."""

    def __init__(self, result_file: Path, samples, exit_codes=None) -> None:
        self.result_file = result_file
        self.samples = list(samples)
        self.exit_codes = exit_codes or {}
        self.iterations: list[int] = []

    def run(self, iteration):
        self.iterations.append(iteration)
        imc, resc = self.samples[iteration]
        record = ResultRecord(pid=4242, imc_bw=imc, resc_bw=resc)
        with self.result_file.open("a") as f:
            f.write(format_result_line(record))
        return self.exit_codes.get(iteration, 0)


@pytest.fixture
def fake_resctrl() -> FakeResctrl:
    """A resctrl double that reports MBA as available."""
    return FakeResctrl()
