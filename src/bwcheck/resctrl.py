# Copyright (c) Syntropy Systems
"""Access to the resctrl filesystem and CPU topology in sysfs."""
from __future__ import annotations

import contextlib
import logging
from pathlib import Path

from bwcheck.errors import AllocationWriteError, ResctrlError

logger = logging.getLogger(__name__)

RESCTRL_ROOT = Path("/sys/fs/resctrl")
CPU_SYSFS = Path("/sys/devices/system/cpu")
CPUINFO = Path("/proc/cpuinfo")

VENDORS = {
    "GenuineIntel": "intel",
    "AuthenticAMD": "amd",
    "HygonGenuine": "hygon",
}


def detect_vendor(cpuinfo: Path = CPUINFO) -> str | None:
    """Return the CPU vendor tag ("intel", "amd", ...) or None if unknown."""
    try:
        text = cpuinfo.read_text()
    except OSError:
        return None

    for line in text.splitlines():
        key, _, value = line.partition(":")
        if key.strip() == "vendor_id":
            return VENDORS.get(value.strip())
    return None


class ResctrlFS:
    """A mounted resctrl filesystem.

    Only the operations needed to set a memory bandwidth allocation and read
    the matching monitoring counter are provided.
    """

    root: Path
    cpu_sysfs: Path

    def __init__(
        self,
        root: Path | str = RESCTRL_ROOT,
        cpu_sysfs: Path | str = CPU_SYSFS,
    ) -> None:
        """Initialize with the resctrl mount point and the sysfs cpu dir."""
        self.root = Path(root)
        self.cpu_sysfs = Path(cpu_sysfs)

    @property
    def info_dir(self) -> Path:
        """The info directory, present only when resctrl is mounted."""
        return self.root / "info"

    def is_mounted(self) -> bool:
        """Check that resctrl is mounted at root."""
        return self.info_dir.is_dir()

    def resource_available(self, resource: str) -> bool:
        """Check that a control resource (e.g. "MB") is supported."""
        return (self.info_dir / resource).is_dir()

    def mon_features(self, mon_resource: str) -> list[str]:
        """List the monitoring events of a monitoring resource (e.g. "L3_MON")."""
        path = self.info_dir / mon_resource / "mon_features"
        try:
            return path.read_text().split()
        except OSError:
            return []

    def feature_available(
        self,
        resource: str,
        mon_resource: str | None = None,
        mon_feature: str | None = None,
    ) -> bool:
        """Check a control resource and, optionally, a monitoring event."""
        if not self.is_mounted():
            logger.debug("resctrl is not mounted at %s", self.root)
            return False
        if not self.resource_available(resource):
            logger.debug("resctrl resource %s not supported", resource)
            return False
        if mon_resource is not None and mon_feature is not None:
            if mon_feature not in self.mon_features(mon_resource):
                logger.debug("%s does not provide %s", mon_resource, mon_feature)
                return False
        return True

    def domain_id(self, cpu: int) -> int:
        """Return the L3 cache id of a cpu, which is its MB/L3_MON domain."""
        path = self.cpu_sysfs / f"cpu{cpu}" / "cache" / "index3" / "id"
        try:
            return int(path.read_text().strip())
        except (OSError, ValueError) as e:
            msg = f"Cannot determine cache domain of cpu {cpu}: {e}"
            raise ResctrlError(msg) from e

    def group_dir(self, ctrlgrp: str | None) -> Path:
        """Directory of a control group; the default group is the root."""
        if not ctrlgrp:
            return self.root
        return self.root / ctrlgrp

    def create_group(self, ctrlgrp: str) -> Path:
        """Create a control group if it does not exist yet."""
        path = self.group_dir(ctrlgrp)
        try:
            path.mkdir(exist_ok=True)
        except OSError as e:
            msg = f"Cannot create control group {ctrlgrp}: {e}"
            raise ResctrlError(msg) from e
        return path

    def write_schemata(
        self,
        ctrlgrp: str,
        value: str,
        cpu: int,
        resource: str,
    ) -> None:
        """Set the allocation of a resource in a control group.

        Writes "<resource>:<domain>=<value>" for the domain cpu belongs to.
        Any failure is raised as AllocationWriteError.
        """
        try:
            domain = self.domain_id(cpu)
            group = self.create_group(ctrlgrp) if ctrlgrp else self.root
        except ResctrlError as e:
            raise AllocationWriteError(str(e)) from e

        schema = f"{resource}:{domain}={value}\n"
        try:
            with (group / "schemata").open("w") as f:
                _ = f.write(schema)
        except OSError as e:
            msg = f"Cannot write schemata {schema.strip()!r} to {group}: {e}"
            raise AllocationWriteError(msg) from e

        logger.debug("Wrote schemata %s to %s", schema.strip(), group)

    def assign_task(self, ctrlgrp: str, pid: int) -> None:
        """Move a task into a control group."""
        tasks = self.group_dir(ctrlgrp) / "tasks"
        try:
            with tasks.open("w") as f:
                _ = f.write(f"{pid}\n")
        except OSError as e:
            msg = f"Cannot assign pid {pid} to {ctrlgrp}: {e}"
            raise ResctrlError(msg) from e

    def mbm_local_path(self, ctrlgrp: str, domain: int) -> Path:
        """Path of the mbm_local_bytes counter of a group for one domain."""
        return (
            self.group_dir(ctrlgrp)
            / "mon_data"
            / f"mon_L3_{domain:02d}"
            / "mbm_local_bytes"
        )

    def read_mbm_local_bytes(self, ctrlgrp: str, domain: int) -> int:
        """Read the local memory bandwidth byte counter of a group."""
        path = self.mbm_local_path(ctrlgrp, domain)
        try:
            return int(path.read_text().strip())
        except (OSError, ValueError) as e:
            msg = f"Cannot read {path}: {e}"
            raise ResctrlError(msg) from e

    def remove_group(self, ctrlgrp: str) -> None:
        """Remove a control group; a missing group is not an error."""
        if not ctrlgrp:
            return
        try:
            with contextlib.suppress(FileNotFoundError):
                self.group_dir(ctrlgrp).rmdir()
        except OSError as e:
            msg = f"Cannot remove control group {ctrlgrp}: {e}"
            raise ResctrlError(msg) from e
