# Copyright (c) Syntropy Systems
"""Memory controller (iMC) bandwidth from uncore perf counters."""
from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from bwcheck.errors import WorkloadError

logger = logging.getLogger(__name__)

EVENT_SOURCES = Path("/sys/bus/event_source/devices")
IMC_PREFIX = "uncore_imc"
CAS_LINE_BYTES = 64
MB = 1024 * 1024
PERF_TIMEOUT_MARGIN = 10.0

EVENTS = {
    "reads": "cas_count_read",
    "writes": "cas_count_write",
}

_SCALED_UNITS = {
    "MiB": 1.0,
    "KiB": 1.0 / 1024,
    "B": 1.0 / MB,
}


def parse_perf_csv(output: str) -> float:
    """Sum the counters of `perf stat -x,` output, in MB.

    Counters perf already scaled to a byte unit are converted; raw CAS
    counts are multiplied by the cache line size. Unsupported or
    uncounted events are an error.
    """
    total = 0.0
    counted = 0
    for line in output.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split(",")
        if len(parts) < 3:  # noqa: PLR2004
            continue
        value, unit, event = parts[0], parts[1], parts[2]
        if value.startswith("<"):
            msg = f"perf could not count {event}: {value}"
            raise WorkloadError(msg)
        try:
            number = float(value)
        except ValueError:
            continue
        if unit in _SCALED_UNITS:
            total += number * _SCALED_UNITS[unit]
        else:
            total += number * CAS_LINE_BYTES / MB
        counted += 1

    if counted == 0:
        msg = "perf reported no iMC counters"
        raise WorkloadError(msg)
    return total


class ImcCounter:
    """Measures system-wide memory controller bandwidth with `perf stat`."""

    perf: str
    event_sources: Path
    bw_report: str

    def __init__(
        self,
        perf: str = "perf",
        event_sources: Path = EVENT_SOURCES,
        bw_report: str = "reads",
    ) -> None:
        """Initialize a counter.

        Args:
            perf: perf executable name or path
            event_sources: sysfs directory listing the PMUs
            bw_report: "reads" or "writes"

        """
        if bw_report not in EVENTS:
            msg = (
                f"Unknown bandwidth report {bw_report!r}, "
                f"expected one of {sorted(EVENTS)}"
            )
            raise ValueError(msg)
        self.perf = perf
        self.event_sources = event_sources
        self.bw_report = bw_report

    def pmus(self) -> list[str]:
        """Names of the iMC PMUs, sorted."""
        if not self.event_sources.is_dir():
            return []
        return sorted(
            p.name for p in self.event_sources.iterdir() if p.name.startswith(IMC_PREFIX)
        )

    def perf_path(self) -> str | None:
        """Resolved perf executable, or None if it is not installed."""
        return shutil.which(self.perf)

    def available(self) -> bool:
        """Check that perf and at least one iMC PMU are present."""
        return self.perf_path() is not None and bool(self.pmus())

    def events(self) -> list[str]:
        """perf event names for every iMC channel."""
        event = EVENTS[self.bw_report]
        return [f"{pmu}/{event}/" for pmu in self.pmus()]

    def measure(self, interval: float) -> float:
        """Count iMC traffic for interval seconds and return MB per second."""
        perf_path = self.perf_path()
        if perf_path is None:
            msg = f"{self.perf} not found"
            raise WorkloadError(msg)
        events = self.events()
        if not events:
            msg = f"No {IMC_PREFIX} PMUs under {self.event_sources}"
            raise WorkloadError(msg)

        try:
            result = subprocess.run(  # noqa: S603
                [
                    perf_path,
                    "stat",
                    "-x",
                    ",",
                    "-a",
                    "-e",
                    ",".join(events),
                    "--",
                    "sleep",
                    str(interval),
                ],
                capture_output=True,
                text=True,
                timeout=interval + PERF_TIMEOUT_MARGIN,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            msg = f"perf stat failed: {e}"
            raise WorkloadError(msg) from e

        if result.returncode != 0:
            msg = f"perf stat exited with {result.returncode}: {result.stderr.strip()}"
            raise WorkloadError(msg)

        # perf stat writes its counters to stderr
        megabytes = parse_perf_csv(result.stderr)
        logger.debug("iMC %s: %.1f MB in %.2fs", self.bw_report, megabytes, interval)
        return megabytes / interval
