# Copyright (c) Syntropy Systems
"""Benchmark workload: runs the benchmark and records one measurement per run."""
from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from bwcheck.errors import ResctrlError, WorkloadError
from bwcheck.models.results import ResultRecord
from bwcheck.results import format_result_line
from bwcheck.runner import JobRunner

if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

    from bwcheck.perf import ImcCounter
    from bwcheck.resctrl import ResctrlFS

logger = logging.getLogger(__name__)

MB = 1024 * 1024
MIN_ELAPSED = 1e-6


class BenchmarkWorkload:
    """The benchmark running inside a control group, sampled once per run.

    The benchmark is started on the first run and keeps running until the
    workload is closed. Each run measures the iMC and resctrl bandwidth over
    the same window and appends a line to the result log.
    """

    command: list[str]
    resctrl: ResctrlFS
    imc: ImcCounter
    result_file: Path
    ctrlgrp: str
    cpu: int
    interval: float
    grace_period: float
    _runner: JobRunner | None
    _domain: int | None

    def __init__(
        self,
        command: list[str],
        resctrl: ResctrlFS,
        imc: ImcCounter,
        result_file: Path,
        ctrlgrp: str = "c1",
        cpu: int = 1,
        interval: float = 1.0,
        grace_period: float = 5.0,
    ) -> None:
        """Initialize a workload; nothing is started until the first run."""
        self.command = command
        self.resctrl = resctrl
        self.imc = imc
        self.result_file = result_file
        self.ctrlgrp = ctrlgrp
        self.cpu = cpu
        self.interval = interval
        self.grace_period = grace_period
        self._runner = None
        self._domain = None

    def __enter__(self) -> BenchmarkWorkload:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _start(self) -> tuple[JobRunner, int]:
        domain = self.resctrl.domain_id(self.cpu)
        _ = self.resctrl.create_group(self.ctrlgrp)

        runner = JobRunner(self.command, cpu=self.cpu)
        try:
            runner.start()
        except OSError as e:
            msg = f"Cannot start benchmark {self.command[0]}: {e}"
            raise WorkloadError(msg) from e
        self._runner = runner
        self._domain = domain

        if runner.pid is not None:
            self.resctrl.assign_task(self.ctrlgrp, runner.pid)
        logger.info(
            "Benchmark pid %s running in %s on cpu %d",
            runner.pid,
            self.ctrlgrp,
            self.cpu,
        )
        return runner, domain

    def run(self, iteration: int) -> int:
        """Measure one run and append it to the result log.

        Returns 0; failures raise WorkloadError or ResctrlError.
        """
        if self._runner is None or self._domain is None:
            runner, domain = self._start()
        else:
            runner, domain = self._runner, self._domain
        code = runner.poll()
        if code is not None:
            msg = f"Benchmark exited early with status {code}"
            raise WorkloadError(msg)

        before = self.resctrl.read_mbm_local_bytes(self.ctrlgrp, domain)
        started = time.monotonic()
        imc_bw = self.imc.measure(self.interval)
        after = self.resctrl.read_mbm_local_bytes(self.ctrlgrp, domain)
        elapsed = max(time.monotonic() - started, MIN_ELAPSED)

        if after < before:
            msg = f"mbm_local_bytes went backwards ({before} -> {after})"
            raise WorkloadError(msg)
        resc_bw = (after - before) / MB / elapsed

        record = ResultRecord(
            pid=runner.pid or 0,
            imc_bw=int(imc_bw),
            resc_bw=int(resc_bw),
        )
        try:
            with self.result_file.open("a") as f:
                _ = f.write(format_result_line(record))
        except OSError as e:
            msg = f"Cannot write result log {self.result_file}: {e}"
            raise WorkloadError(msg) from e

        logger.debug(
            "Run %d: iMC %d MB/s, resctrl %d MB/s",
            iteration,
            record.imc_bw,
            record.resc_bw,
        )
        return 0

    def close(self) -> None:
        """Stop the benchmark and remove the control group."""
        if self._runner is not None:
            code = self._runner.kill(grace_period=self.grace_period)
            logger.debug("Benchmark stopped with status %d", code)
            self._runner = None
        try:
            self.resctrl.remove_group(self.ctrlgrp)
        except ResctrlError as e:
            logger.warning("%s", e)
