# Copyright (c) Syntropy Systems
"""Exception hierarchy for bwcheck.

Every fatal condition of a test run derives from BwcheckError. A feature
that is not available is not an error; it produces a skipped outcome.
"""
from __future__ import annotations


class BwcheckError(Exception):
    """Base class for fatal bwcheck errors."""


class ResctrlError(BwcheckError):
    """A resctrl filesystem operation failed."""


class AllocationWriteError(ResctrlError):
    """Writing an allocation to a control group's schemata failed."""


class ResultParseError(BwcheckError):
    """The result log is missing or malformed."""

    def __init__(self, msg: str, line_number: int | None = None) -> None:
        """Initialize with an optional 1-based line number."""
        if line_number is not None:
            msg = f"line {line_number}: {msg}"
        super().__init__(msg)
        self.line_number = line_number


class ValidationError(BwcheckError):
    """The measurement series cannot be validated."""


class WorkloadError(BwcheckError):
    """The benchmark could not be started, measured, or exited early."""
