# Copyright (c) Syntropy Systems
"""Test descriptors and the runner that executes them."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from bwcheck.errors import BwcheckError
from bwcheck.models.results import TestOutcome

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from bwcheck.config import BwcheckConfig
    from bwcheck.models.results import ValidationReport
    from bwcheck.perf import ImcCounter
    from bwcheck.resctrl import ResctrlFS

logger = logging.getLogger(__name__)


@dataclass
class UserParams:
    """Everything a test needs from the command line and the machine."""

    config: BwcheckConfig
    resctrl: ResctrlFS
    imc: ImcCounter
    benchmark: list[str] = field(default_factory=list)
    cpu: int = 1
    vendor: str | None = None


@dataclass
class TestResult:
    """Result of one test."""

    __test__ = False

    name: str
    outcome: TestOutcome
    report: ValidationReport | None = None
    message: str | None = None

    @property
    def exit_code(self) -> int:
        """kselftest exit code of this result."""
        return self.outcome.exit_code


@dataclass(frozen=True)
class ResctrlTest:
    """A registered resctrl test.

    vendor limits the test to one CPU vendor; None runs it everywhere.
    """

    __test__ = False

    name: str
    resource: str
    feature_check: Callable[[ResctrlTest, UserParams], bool]
    run_test: Callable[[ResctrlTest, UserParams], TestResult]
    cleanup: Callable[[ResctrlTest, UserParams], None]
    vendor: str | None = None


def all_tests() -> list[ResctrlTest]:
    """All registered tests, in run order."""
    from bwcheck.mba import MBA_TEST

    return [MBA_TEST]


def get_test(name: str) -> ResctrlTest:
    """Look up a registered test by name (case-insensitive)."""
    for test in all_tests():
        if test.name.lower() == name.lower():
            return test
    known = ", ".join(t.name for t in all_tests())
    msg = f"Unknown test '{name}'. Available: {known}"
    raise ValueError(msg)


def run_one(test: ResctrlTest, params: UserParams) -> TestResult:
    """Run a single test, mapping skips and errors to outcomes.

    Cleanup runs whenever the test was started, whatever the outcome.
    """
    if test.vendor is not None and params.vendor != test.vendor:
        msg = f"Hardware does not support {test.name} (vendor {params.vendor})"
        logger.info(msg)
        return TestResult(test.name, TestOutcome.SKIP, message=msg)

    if not test.feature_check(test, params):
        msg = f"Hardware does not support {test.name} or {test.name} is disabled"
        logger.info(msg)
        return TestResult(test.name, TestOutcome.SKIP, message=msg)

    try:
        return test.run_test(test, params)
    except (BwcheckError, ValueError) as e:
        logger.error("%s test aborted: %s", test.name, e)  # noqa: TRY400
        return TestResult(test.name, TestOutcome.ERROR, message=str(e))
    finally:
        test.cleanup(test, params)


def run_selected(
    tests: Iterable[ResctrlTest],
    params: UserParams,
) -> list[TestResult]:
    """Run tests in order and collect their results."""
    return [run_one(test, params) for test in tests]


def overall_exit_code(results: Iterable[TestResult]) -> int:
    """Exit code for a whole session.

    Errors outrank failures, failures outrank passes. A session where every
    test was skipped exits with the skip code.
    """
    outcomes = {r.outcome for r in results}
    for outcome in (TestOutcome.ERROR, TestOutcome.FAIL, TestOutcome.PASS):
        if outcome in outcomes:
            return outcome.exit_code
    return TestOutcome.SKIP.exit_code
