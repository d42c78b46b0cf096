# Copyright (c) Syntropy Systems
"""Statistical comparison of iMC and resctrl bandwidth per allocation level."""
from __future__ import annotations

from typing import TYPE_CHECKING

from bwcheck.errors import ValidationError
from bwcheck.models.results import LevelStatistics, ValidationReport

if TYPE_CHECKING:
    from collections.abc import Sequence

    from bwcheck.models.results import ResultRecord

MAX_DIFF_PERCENT = 8

# The first run after an allocation change is skewed by the phase transition
WARMUP_RUNS = 1


def level_statistics(
    block: Sequence[ResultRecord],
    allocation: int,
    tolerance_percent: int = MAX_DIFF_PERCENT,
) -> LevelStatistics:
    """Average one level's block of records, ignoring the warm-up run.

    The difference is relative to the iMC reading and truncated to a
    whole percentage. A level passes when it does not exceed the tolerance.
    """
    retained = block[WARMUP_RUNS:]
    if not retained:
        msg = (
            f"Allocation {allocation}: need more than {WARMUP_RUNS} run(s) "
            f"per level, got {len(block)}"
        )
        raise ValidationError(msg)

    avg_imc = sum(r.imc_bw for r in retained) // len(retained)
    avg_resc = sum(r.resc_bw for r in retained) // len(retained)
    if avg_imc == 0:
        msg = f"Allocation {allocation}: average iMC bandwidth is zero"
        raise ValidationError(msg)

    diff_percent = abs(avg_resc - avg_imc) * 100 // avg_imc

    return LevelStatistics(
        allocation=allocation,
        avg_imc_bw=avg_imc,
        avg_resc_bw=avg_resc,
        diff_percent=diff_percent,
        passed=diff_percent <= tolerance_percent,
    )


def validate(
    series: Sequence[ResultRecord],
    levels: Sequence[int],
    repeat_count: int,
    tolerance_percent: int = MAX_DIFF_PERCENT,
) -> ValidationReport:
    """Check every allocation level of a run.

    Records are grouped in consecutive blocks of repeat_count, one block
    per level in the order the levels were applied. Records past the last
    block are ignored.
    """
    if repeat_count <= WARMUP_RUNS:
        msg = (
            f"repeat_count must be greater than {WARMUP_RUNS}, got {repeat_count}"
        )
        raise ValidationError(msg)

    expected = len(levels) * repeat_count
    if len(series) < expected:
        msg = (
            f"Result log has {len(series)} records, expected {expected} "
            f"({len(levels)} levels x {repeat_count} runs)"
        )
        raise ValidationError(msg)

    stats = [
        level_statistics(
            series[i * repeat_count : (i + 1) * repeat_count],
            allocation,
            tolerance_percent,
        )
        for i, allocation in enumerate(levels)
    ]

    return ValidationReport(
        levels=stats,
        tolerance_percent=tolerance_percent,
        failed=any(not s.passed for s in stats),
    )
