# Copyright (c) Syntropy Systems
"""Benchmark process runner with CPU pinning and orphan prevention."""
from __future__ import annotations

import contextlib
import ctypes
import logging
import os
import signal
import subprocess
import sys
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


def setup_pdeathsig() -> None:
    """Set PDEATHSIG so the benchmark dies when bwcheck dies.

    Only works on Linux.
    """
    if sys.platform != "linux":
        return
    try:
        libc = ctypes.CDLL("libc.so.6", use_errno=True)
        pr_set_pdeathsig = 1
        libc.prctl(pr_set_pdeathsig, signal.SIGKILL)
    except (AttributeError, OSError):
        # Can't set PDEATHSIG, continue without it
        return


def _child_setup(cpu: int | None) -> Callable[[], None]:
    def setup() -> None:
        setup_pdeathsig()
        if cpu is not None:
            os.sched_setaffinity(0, {cpu})

    return setup


class JobRunner:
    """Runs the benchmark command in its own process group.

    Features:
    - Uses start_new_session=True so the whole benchmark tree can be killed
    - Sets PDEATHSIG on Linux to prevent orphans
    - Pins the benchmark to one cpu
    - Discards the benchmark's output
    """

    command_argv: list[str]
    cpu: int | None
    _process: subprocess.Popen[bytes] | None
    _exit_code: int | None

    def __init__(self, command_argv: list[str], cpu: int | None = None) -> None:
        """Initialize a runner.

        Args:
            command_argv: Command as list of argv tokens (no shell)
            cpu: CPU to pin the benchmark to

        """
        if not command_argv:
            msg = "Benchmark command is empty"
            raise ValueError(msg)
        self.command_argv = command_argv
        self.cpu = cpu
        self._process = None
        self._exit_code = None

    def start(self) -> None:
        """Start the benchmark process."""
        self._process = subprocess.Popen(  # noqa: S603
            self.command_argv,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
            preexec_fn=_child_setup(self.cpu) if sys.platform == "linux" else None,  # noqa: PLW1509
        )
        logger.debug("Started benchmark pid %d: %s", self._process.pid, self.command_argv)

    def poll(self) -> int | None:
        """Check if the process has finished.

        Returns exit code if finished, None if still running.
        """
        if self._process is None:
            return self._exit_code

        code = self._process.poll()
        if code is not None:
            self._exit_code = code

        return code

    def kill(self, grace_period: float = 10.0) -> int:
        """Stop the benchmark.

        First sends SIGTERM to the process group, waits for grace_period,
        then sends SIGKILL if still alive.

        Returns:
            Exit code (negative signal number if killed)

        """
        if self._process is None:
            return self._exit_code or 0

        if self._process.poll() is not None:
            exit_code = self._process.returncode or 0
            self._exit_code = exit_code
            return exit_code

        try:
            pgid = os.getpgid(self._process.pid)
        except (OSError, ProcessLookupError):
            return self._exit_code or -signal.SIGKILL

        with contextlib.suppress(OSError, ProcessLookupError):
            os.killpg(pgid, signal.SIGTERM)

        deadline = time.time() + grace_period
        while time.time() < deadline:
            if self._process.poll() is not None:
                exit_code = self._process.returncode or 0
                self._exit_code = exit_code
                return exit_code
            time.sleep(0.1)

        # Still alive - SIGKILL
        with contextlib.suppress(OSError, ProcessLookupError):
            os.killpg(pgid, signal.SIGKILL)

        with contextlib.suppress(subprocess.TimeoutExpired):
            _ = self._process.wait(timeout=5.0)

        exit_code = self._process.returncode or -signal.SIGKILL
        self._exit_code = exit_code
        return exit_code

    @property
    def pid(self) -> int | None:
        """Get the process ID."""
        if self._process is None:
            return None
        return self._process.pid
