"""Discovery of block device partitions from sysfs, udev data and mounts."""

from __future__ import annotations

import os
import re

from elementalkit.types import Partition

UNKNOWN = "unknown"
_SECTOR_SIZE = 512
_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


def _read(path: str) -> str:
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.read().strip()
    except OSError:
        return ""


def _udev_properties(sys_root: str, part_dir: str) -> dict[str, str]:
    dev = _read(os.path.join(part_dir, "dev"))
    if not dev:
        return {}
    data = _read(os.path.join(sys_root, "run", "udev", "data", f"b{dev}"))
    props: dict[str, str] = {}
    for line in data.splitlines():
        if line.startswith("E:") and "=" in line:
            key, _, value = line[2:].partition("=")
            props[key] = value
    return props


def _mounts(sys_root: str) -> dict[str, tuple[str, str]]:
    mounts: dict[str, tuple[str, str]] = {}
    for line in _read(os.path.join(sys_root, "proc", "mounts")).splitlines():
        fields = line.split()
        if len(fields) < 3:
            continue
        device, mount_point, fstype = fields[:3]
        mount_point = _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), mount_point)
        mounts.setdefault(device, (mount_point, fstype))
    return mounts


def _partition_size_mib(part_dir: str) -> int:
    sectors = _read(os.path.join(part_dir, "size"))
    try:
        return int(sectors) * _SECTOR_SIZE // (1024 * 1024)
    except ValueError:
        return 0


def get_all_partitions(sys_root: str = "/") -> list[Partition]:
    """All partitions of all disks in the system."""
    block_dir = os.path.join(sys_root, "sys", "block")
    mounts = _mounts(sys_root)
    partitions: list[Partition] = []
    for disk in sorted(os.listdir(block_dir)):
        disk_dir = os.path.join(block_dir, disk)
        if not os.path.isdir(disk_dir):
            continue
        for entry in sorted(os.listdir(disk_dir)):
            part_dir = os.path.join(disk_dir, entry)
            if not entry.startswith(disk) or not os.path.exists(
                os.path.join(part_dir, "partition")
            ):
                continue
            props = _udev_properties(sys_root, part_dir)
            path = os.path.join("/dev", entry)
            mount_point, fstype = mounts.get(path, ("", ""))
            partitions.append(
                Partition(
                    label=props.get("ID_FS_LABEL", ""),
                    size=_partition_size_mib(part_dir),
                    name=entry,
                    fs=fstype or props.get("ID_FS_TYPE", "") or UNKNOWN,
                    flags=None,
                    mount_point=mount_point,
                    path=path,
                    disk=os.path.join("/dev", disk),
                )
            )
    return partitions


def get_partition_fs(partition: str, sys_root: str = "/") -> str:
    """The file system type of a partition given by name or /dev path."""
    if not partition.startswith("/dev"):
        partition = os.path.normpath(os.path.join("/dev", partition))
    for part in get_all_partitions(sys_root):
        if part.path == partition:
            if part.fs == UNKNOWN:
                break
            return part.fs
    raise LookupError(f"could not find filesystem for partition {partition}")