# Copyright (c) Syntropy Systems
"""Memory Bandwidth Allocation (MBA) test.

Lowers the MB schemata of a control group from 100% to 10% in steps of
10. Each allocation is held for NUM_OF_RUNS runs; the first run of each
allocation is discarded and the rest are averaged. A level passes when the
resctrl bandwidth is within MAX_DIFF_PERCENT of the iMC bandwidth.
"""
from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from bwcheck.errors import ValidationError, WorkloadError
from bwcheck.models.results import TestOutcome
from bwcheck.phase import NUM_OF_RUNS, PhaseController, PhaseState
from bwcheck.results import read_results
from bwcheck.schedule import (
    ALLOCATION_MAX,
    ALLOCATION_MIN,
    ALLOCATION_STEP,
    iter_levels,
    schedule_levels,
)
from bwcheck.suite import ResctrlTest, TestResult
from bwcheck.validate import MAX_DIFF_PERCENT, WARMUP_RUNS, validate
from bwcheck.workload import BenchmarkWorkload

if TYPE_CHECKING:
    from collections.abc import Iterator

    from bwcheck.config import BwcheckConfig
    from bwcheck.models.results import ValidationReport
    from bwcheck.suite import UserParams

logger = logging.getLogger(__name__)

RESULT_FILE_NAME = "result_mba"
MBA_RESOURCE = "MB"
MON_RESOURCE = "L3_MON"
MON_FEATURE = "mbm_local_bytes"


class ResourceControl(Protocol):
    """Applies allocations and reports which features exist."""

    def feature_available(
        self,
        resource: str,
        mon_resource: str | None = None,
        mon_feature: str | None = None,
    ) -> bool: ...

    def write_schemata(
        self,
        ctrlgrp: str,
        value: str,
        cpu: int,
        resource: str,
    ) -> None: ...


class Workload(Protocol):
    """Runs the measured workload once, appending one record to the result log."""

    def run(self, iteration: int) -> int: ...


class TestState(str, Enum):
    """Lifecycle of one MBA run."""

    __test__ = False

    NOT_STARTED = "not_started"
    FEATURE_CHECKED = "feature_checked"
    RUNNING = "running"
    PARSED = "parsed"
    VALIDATED = "validated"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class MbaParams:
    """Parameters of one MBA run."""

    ctrlgrp: str = "c1"
    cpu: int = 1
    result_file: Path = field(default_factory=lambda: Path(RESULT_FILE_NAME))
    allocation_max: int = ALLOCATION_MAX
    allocation_min: int = ALLOCATION_MIN
    allocation_step: int = ALLOCATION_STEP
    num_of_runs: int = NUM_OF_RUNS
    max_diff_percent: int = MAX_DIFF_PERCENT

    @classmethod
    def from_config(cls, config: BwcheckConfig, cpu: int | None = None) -> MbaParams:
        """Build parameters from the loaded configuration."""
        return cls(
            ctrlgrp=config.ctrlgrp,
            cpu=config.cpu if cpu is None else cpu,
            result_file=Path(config.result_file),
            allocation_max=config.allocation_max,
            allocation_min=config.allocation_min,
            allocation_step=config.allocation_step,
            num_of_runs=config.num_of_runs,
            max_diff_percent=config.max_diff_percent,
        )

    def levels(self) -> list[int]:
        """The allocation schedule of this run."""
        return schedule_levels(
            self.allocation_max, self.allocation_min, self.allocation_step
        )


@dataclass
class MbaRun:
    """State and result of one MBA run."""

    params: MbaParams
    state: TestState = TestState.NOT_STARTED
    phase: PhaseState = field(default_factory=PhaseState)
    report: ValidationReport | None = None
    skipped: bool = False
    iterations: int = 0

    def enter(self, state: TestState) -> None:
        """Move to a new lifecycle state."""
        logger.debug("MBA run: %s -> %s", self.state.value, state.value)
        self.state = state

    @property
    def outcome(self) -> TestOutcome:
        """Outcome of the run so far."""
        if self.state == TestState.ABORTED:
            return TestOutcome.ERROR
        if self.skipped:
            return TestOutcome.SKIP
        if self.report is None:
            return TestOutcome.ERROR
        return TestOutcome.FAIL if self.report.failed else TestOutcome.PASS


@contextlib.contextmanager
def scoped_result_file(path: Path) -> Iterator[Path]:
    """Provide an empty result log that is removed on exit."""
    path.unlink(missing_ok=True)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


def mba_resources_available(resctrl: ResourceControl) -> bool:
    """Check for the MB resource and the local bandwidth monitor."""
    return resctrl.feature_available(MBA_RESOURCE, MON_RESOURCE, MON_FEATURE)


def _run_iterations(run: MbaRun, resctrl: ResourceControl, workload: Workload) -> None:
    params = run.params

    def write_allocation(level: int) -> None:
        resctrl.write_schemata(params.ctrlgrp, str(level), params.cpu, MBA_RESOURCE)

    levels = iter_levels(
        params.allocation_max, params.allocation_min, params.allocation_step
    )
    controller = PhaseController(
        levels,
        write_allocation,
        repeat_count=params.num_of_runs,
        state=run.phase,
    )

    iteration = 0
    while True:
        step = controller.advance(iteration)
        if step.terminal:
            break
        if step.apply_level is not None:
            logger.info("Write schema \"MB:%d\" to %s", step.apply_level, params.ctrlgrp)

        code = workload.run(iteration)
        if code != 0:
            msg = f"Workload run {iteration} exited with status {code}"
            raise WorkloadError(msg)
        iteration += 1
        run.iterations = iteration


def run_mba_test(
    params: MbaParams,
    resctrl: ResourceControl,
    workload: Workload,
) -> MbaRun:
    """Run the MBA test to completion.

    Returns the run with its report, or marked skipped when the hardware
    lacks MBA or local bandwidth monitoring. Fatal errors leave the run
    aborted and propagate. The result log never outlives the call.
    """
    run = MbaRun(params)

    if not mba_resources_available(resctrl):
        logger.info("MBA or %s not available, skipping", MON_FEATURE)
        run.skipped = True
        run.enter(TestState.DONE)
        return run
    run.enter(TestState.FEATURE_CHECKED)

    try:
        levels = params.levels()
        if params.num_of_runs <= WARMUP_RUNS:
            msg = (
                f"num_of_runs must be greater than {WARMUP_RUNS}, "
                f"got {params.num_of_runs}"
            )
            raise ValidationError(msg)

        with scoped_result_file(params.result_file) as result_file:
            run.enter(TestState.RUNNING)
            _run_iterations(run, resctrl, workload)

            records = read_results(
                result_file, max_records=len(levels) * params.num_of_runs
            )
            run.enter(TestState.PARSED)

            run.report = validate(
                records, levels, params.num_of_runs, params.max_diff_percent
            )
            run.enter(TestState.VALIDATED)
    except Exception:
        run.enter(TestState.ABORTED)
        raise

    run.enter(TestState.DONE)
    return run


def mba_feature_check(test: ResctrlTest, params: UserParams) -> bool:
    """Feature check of the registered MBA test."""
    return params.resctrl.feature_available(test.resource, MON_RESOURCE, MON_FEATURE)


def mba_run_test(test: ResctrlTest, params: UserParams) -> TestResult:
    """Run the MBA test against the real resctrl filesystem and benchmark."""
    mba_params = MbaParams.from_config(params.config, cpu=params.cpu)

    with BenchmarkWorkload(
        params.benchmark or params.config.benchmark,
        params.resctrl,
        params.imc,
        mba_params.result_file,
        ctrlgrp=mba_params.ctrlgrp,
        cpu=mba_params.cpu,
        interval=params.config.measure_interval,
    ) as workload:
        run = run_mba_test(mba_params, params.resctrl, workload)

    return TestResult(test.name, run.outcome, report=run.report)


def mba_test_cleanup(test: ResctrlTest, params: UserParams) -> None:
    """Remove the result log left by an interrupted run."""
    _ = test
    Path(params.config.result_file).unlink(missing_ok=True)


MBA_TEST = ResctrlTest(
    name="MBA",
    resource=MBA_RESOURCE,
    vendor="intel",
    feature_check=mba_feature_check,
    run_test=mba_run_test,
    cleanup=mba_test_cleanup,
)
