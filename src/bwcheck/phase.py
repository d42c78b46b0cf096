# Copyright (c) Syntropy Systems
"""Phase controller: applies one allocation level per block of runs."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

logger = logging.getLogger(__name__)

NUM_OF_RUNS = 5


@dataclass
class PhaseStep:
    """What the caller must do for one iteration."""

    apply_level: int | None = None
    terminal: bool = False


@dataclass
class PhaseState:
    """Progress of one run through the allocation schedule."""

    level: int | None = None
    runs_at_level: int = 0
    iterations: int = 0
    exhausted: bool = False
    applied: list[int] = field(default_factory=list)


class PhaseController:
    """Steps through the schedule, holding each level for repeat_count runs.

    The allocation is written once, on the first run of each block. The
    other runs of the block reuse the allocation already in effect.
    """

    repeat_count: int
    state: PhaseState
    _levels: Iterator[int]
    _write_allocation: Callable[[int], None]

    def __init__(
        self,
        schedule: Iterable[int],
        write_allocation: Callable[[int], None],
        repeat_count: int = NUM_OF_RUNS,
        state: PhaseState | None = None,
    ) -> None:
        """Initialize a controller.

        Args:
            schedule: Allocation levels in the order they are applied
            write_allocation: Applies a level; raises AllocationWriteError
            repeat_count: Runs per level before moving to the next one
            state: Existing state to continue from (a fresh one by default)

        """
        if repeat_count < 1:
            msg = f"repeat_count must be at least 1, got {repeat_count}"
            raise ValueError(msg)
        self.repeat_count = repeat_count
        self.state = state if state is not None else PhaseState()
        self._levels = iter(schedule)
        self._write_allocation = write_allocation

    def advance(self, iteration: int) -> PhaseStep:
        """Prepare iteration number `iteration` (0-based, strictly in order)."""
        state = self.state
        if state.exhausted:
            return PhaseStep(terminal=True)

        if iteration != state.iterations:
            msg = f"Expected iteration {state.iterations}, got {iteration}"
            raise ValueError(msg)

        if state.runs_at_level >= self.repeat_count:
            state.runs_at_level = 0

        if state.runs_at_level != 0:
            state.runs_at_level += 1
            state.iterations += 1
            return PhaseStep()

        level = next(self._levels, None)
        if level is None:
            state.exhausted = True
            state.level = None
            logger.debug("Allocation schedule exhausted after %d runs", iteration)
            return PhaseStep(terminal=True)

        # Errors propagate; the state is left untouched so nothing is counted
        self._write_allocation(level)
        logger.info("Applied allocation %d", level)

        state.level = level
        state.applied.append(level)
        state.runs_at_level = 1
        state.iterations += 1
        return PhaseStep(apply_level=level)
