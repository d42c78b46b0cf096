# Copyright (c) Syntropy Systems
"""Pydantic models for result log records and validation reports."""

from __future__ import annotations

from enum import Enum

from pydantic import Field, NonNegativeInt

from .base import BwcheckBaseModel, FrozenModel


class ResultRecord(BwcheckBaseModel):
    """One line of the result log, one measurement iteration."""

    pid: NonNegativeInt
    imc_bw: NonNegativeInt
    resc_bw: NonNegativeInt
    difference: NonNegativeInt | None = None


class LevelStatistics(FrozenModel):
    """Averaged bandwidth for one allocation level."""

    allocation: int
    avg_imc_bw: int
    avg_resc_bw: int
    diff_percent: int
    passed: bool


class ValidationReport(FrozenModel):
    """Per-level statistics plus the overall verdict."""

    levels: list[LevelStatistics] = Field(default_factory=list)
    tolerance_percent: int
    failed: bool

    @property
    def passed(self) -> bool:
        """True when every level is within tolerance."""
        return not self.failed

    @property
    def failing_levels(self) -> list[LevelStatistics]:
        """Levels whose difference exceeded the tolerance."""
        return [level for level in self.levels if not level.passed]


class TestOutcome(str, Enum):
    """Outcome of a single test, mapped to kselftest exit codes."""

    __test__ = False

    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"
    ERROR = "error"

    @property
    def exit_code(self) -> int:
        """Process exit code for this outcome."""
        return _EXIT_CODES[self]


_EXIT_CODES = {
    TestOutcome.PASS: 0,
    TestOutcome.FAIL: 1,
    TestOutcome.ERROR: 2,
    TestOutcome.SKIP: 4,
}
