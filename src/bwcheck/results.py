# Copyright (c) Syntropy Systems
"""Result log format: one line per measurement run.

A line looks like::

    Pid: 1234 \t Mem_BW_iMC: 4021.250000 \t Mem_BW_resc: 3987 \t Difference: 34

It is split on runs of ':' and tab, dropping empty tokens. Field 1 holds
the pid, field 3 the bandwidth measured from the memory controller, field 5
the bandwidth reported by resctrl and field 7 the difference.
"""
from __future__ import annotations

import re
from typing import TYPE_CHECKING

from bwcheck.errors import ResultParseError
from bwcheck.models.results import ResultRecord

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

DELIMITERS = re.compile(r"[:\t]+")
PID_FIELD = 1
IMC_FIELD = 3
RESC_FIELD = 5
DIFF_FIELD = 7
_MIN_FIELDS = RESC_FIELD + 1

_UNSIGNED = re.compile(r"^(\d+)(?:\.\d*)?$")


def _unsigned(tokens: list[str], index: int, name: str, line_number: int) -> int:
    token = tokens[index].strip()
    match = _UNSIGNED.match(token)
    if match is None:
        msg = f"field {index} ({name}) is not an unsigned number: {token!r}"
        raise ResultParseError(msg, line_number)
    return int(match.group(1))


def parse_result_line(line: str, line_number: int = 1) -> ResultRecord:
    """Parse one result log line into a ResultRecord.

    Raises ResultParseError if the line has too few fields or a numeric
    field does not hold an unsigned number.
    """
    tokens = [t for t in DELIMITERS.split(line.rstrip("\n")) if t]
    if len(tokens) < _MIN_FIELDS:
        msg = f"expected at least {_MIN_FIELDS} fields, got {len(tokens)}"
        raise ResultParseError(msg, line_number)

    pid = _unsigned(tokens, PID_FIELD, "pid", line_number)
    imc_bw = _unsigned(tokens, IMC_FIELD, "iMC bandwidth", line_number)
    resc_bw = _unsigned(tokens, RESC_FIELD, "resctrl bandwidth", line_number)

    difference = None
    if len(tokens) > DIFF_FIELD and tokens[DIFF_FIELD].strip():
        difference = _unsigned(tokens, DIFF_FIELD, "difference", line_number)

    return ResultRecord(pid=pid, imc_bw=imc_bw, resc_bw=resc_bw, difference=difference)


def parse_results(
    lines: Iterable[str],
    max_records: int | None = None,
) -> list[ResultRecord]:
    """Parse result log lines in order. Blank lines are skipped."""
    records: list[ResultRecord] = []
    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        if max_records is not None and len(records) >= max_records:
            msg = f"more than {max_records} records in result log"
            raise ResultParseError(msg, line_number)
        records.append(parse_result_line(line, line_number))
    return records


def read_results(path: Path, max_records: int | None = None) -> list[ResultRecord]:
    """Read and parse a result log file."""
    try:
        with path.open() as f:
            return parse_results(f, max_records=max_records)
    except OSError as e:
        msg = f"Cannot read result log {path}: {e}"
        raise ResultParseError(msg) from e


def format_result_line(record: ResultRecord) -> str:
    """Render a record in the result log format, newline-terminated."""
    difference = record.difference
    if difference is None:
        difference = abs(record.imc_bw - record.resc_bw)
    return (
        f"Pid: {record.pid} \t Mem_BW_iMC: {record.imc_bw} \t "
        f"Mem_BW_resc: {record.resc_bw} \t Difference: {difference}\n"
    )
