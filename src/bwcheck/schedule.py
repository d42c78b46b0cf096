# Copyright (c) Syntropy Systems
"""Allocation schedule generation."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

ALLOCATION_MAX = 100
ALLOCATION_MIN = 10
ALLOCATION_STEP = 10


def _check_bounds(maximum: int, minimum: int, step: int) -> None:
    if step <= 0:
        msg = f"Allocation step must be positive, got {step}"
        raise ValueError(msg)
    if minimum > maximum:
        msg = f"Allocation minimum {minimum} is above maximum {maximum}"
        raise ValueError(msg)


def iter_levels(
    maximum: int = ALLOCATION_MAX,
    minimum: int = ALLOCATION_MIN,
    step: int = ALLOCATION_STEP,
) -> Iterator[int]:
    """Yield allocation levels from maximum down to the last value >= minimum.

    The iterator is exhausted once the next candidate falls below minimum.
    """
    _check_bounds(maximum, minimum, step)
    return _generate(maximum, minimum, step)


def _generate(maximum: int, minimum: int, step: int) -> Iterator[int]:
    allocation = maximum
    while minimum <= allocation <= maximum:
        yield allocation
        allocation -= step


def schedule_levels(
    maximum: int = ALLOCATION_MAX,
    minimum: int = ALLOCATION_MIN,
    step: int = ALLOCATION_STEP,
) -> list[int]:
    """Return the full allocation schedule as a list."""
    return list(iter_levels(maximum, minimum, step))


def level_count(
    maximum: int = ALLOCATION_MAX,
    minimum: int = ALLOCATION_MIN,
    step: int = ALLOCATION_STEP,
) -> int:
    """Number of levels in the schedule."""
    _check_bounds(maximum, minimum, step)
    return (maximum - minimum) // step + 1
