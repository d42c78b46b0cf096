# Copyright (c) Syntropy Systems
"""Configuration management for bwcheck."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import cast

import yaml

from bwcheck.perf import EVENTS
from bwcheck.phase import NUM_OF_RUNS
from bwcheck.schedule import ALLOCATION_MAX, ALLOCATION_MIN, ALLOCATION_STEP
from bwcheck.validate import MAX_DIFF_PERCENT

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".bwcheck"
CONFIG_FILE_NAME = "config.yaml"


def _default_benchmark() -> list[str]:
    return ["stress-ng", "--stream", "1"]


@dataclass
class BwcheckConfig:
    """Configuration for bwcheck."""

    # Allocation schedule, in percent of the MB resource
    allocation_max: int = ALLOCATION_MAX
    allocation_min: int = ALLOCATION_MIN
    allocation_step: int = ALLOCATION_STEP

    # Runs per allocation level, the first of which is discarded
    num_of_runs: int = NUM_OF_RUNS

    # Largest accepted iMC/resctrl difference, in percent
    max_diff_percent: int = MAX_DIFF_PERCENT

    ctrlgrp: str = "c1"
    cpu: int = 1
    bw_report: str = "reads"
    result_file: str = "result_mba"
    resctrl_root: str = "/sys/fs/resctrl"

    # Length of one measurement window (seconds)
    measure_interval: float = 1.0

    benchmark: list[str] = field(default_factory=_default_benchmark)

    def to_dict(self) -> dict[str, object]:
        """Convert to a plain dictionary suitable for YAML."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def find_config_dir(start_path: Path | None = None) -> Path | None:
    """Find the nearest .bwcheck directory by walking up from start_path.

    Returns None if no .bwcheck directory is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while current != current.parent:
        config_dir = current / CONFIG_DIR_NAME
        if config_dir.is_dir():
            return config_dir
        current = current.parent

    # Check root
    config_dir = current / CONFIG_DIR_NAME
    if config_dir.is_dir():
        return config_dir

    return None


def get_global_config_dir() -> Path:
    """Get the global bwcheck config directory (~/.bwcheck)."""
    return Path.home() / CONFIG_DIR_NAME


def find_config_file() -> Path | None:
    """Locate the config file to use when none is given explicitly.

    Looks for:
    1. Nearest .bwcheck/config.yaml walking up from the cwd
    2. ~/.bwcheck/config.yaml
    """
    found_dir = find_config_dir()
    if found_dir is not None and (found_dir / CONFIG_FILE_NAME).exists():
        return found_dir / CONFIG_FILE_NAME

    global_config = get_global_config_dir() / CONFIG_FILE_NAME
    if global_config.exists():
        return global_config

    return None


def _int_value(data: dict[str, object], key: str) -> int | None:
    value = data.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


def load_config(config_path: Path | None = None) -> BwcheckConfig:
    """Load configuration from a YAML file or defaults.

    Keys with a value of the wrong type keep their default.
    """
    config = BwcheckConfig()

    if config_path is None:
        config_path = find_config_file()

    if config_path is None or not config_path.exists():
        return config

    with config_path.open() as f:
        data = cast("dict[str, object]", yaml.safe_load(f) or {})

    logger.debug("Loading config from %s", config_path)

    for key in (
        "allocation_max",
        "allocation_min",
        "allocation_step",
        "num_of_runs",
        "max_diff_percent",
        "cpu",
    ):
        value = _int_value(data, key)
        if value is not None:
            setattr(config, key, value)
        elif key in data:
            logger.warning("Ignoring config %s=%r: not a number", key, data[key])

    for key in ("ctrlgrp", "bw_report", "result_file", "resctrl_root"):
        value = data.get(key)
        if isinstance(value, str) and value:
            setattr(config, key, value)

    if config.bw_report not in EVENTS:
        logger.warning(
            "Ignoring config bw_report=%r: expected one of %s",
            config.bw_report,
            sorted(EVENTS),
        )
        config.bw_report = BwcheckConfig.bw_report

    measure_interval = data.get("measure_interval")
    if isinstance(measure_interval, (int, float)) and measure_interval > 0:
        config.measure_interval = float(measure_interval)

    benchmark = data.get("benchmark")
    if isinstance(benchmark, str) and benchmark.strip():
        config.benchmark = benchmark.split()
    elif isinstance(benchmark, list) and benchmark:
        config.benchmark = [str(token) for token in cast("list[object]", benchmark)]

    return config


def write_default_config(config_dir: Path) -> Path:
    """Write a config file holding the defaults into config_dir."""
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / CONFIG_FILE_NAME
    with config_path.open("w") as f:
        yaml.dump(BwcheckConfig().to_dict(), f, default_flow_style=False)
    return config_path
