"""Filesystem size and usage for mounted filesystems."""

from __future__ import annotations

import logging
import os
import re
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator

from .helpers import proc_file_path, rootfs_file_path, rootfs_strip_prefix
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name
from .registry import DEFAULT_ENABLED, Collector, register_collector

log = logging.getLogger(__name__)

DEFAULT_IGNORED_MOUNT_POINTS = "^/(dev|proc|sys|var/lib/docker/.+)($|/)"
DEFAULT_IGNORED_FS_TYPES = (
    "^(autofs|binfmt_misc|bpf|cgroup2?|configfs|debugfs|devpts|devtmpfs|fusectl|"
    "hugetlbfs|iso9660|mqueue|nsfs|overlay|proc|procfs|pstore|rpc_pipefs|securityfs|"
    "selinuxfs|squashfs|sysfs|tracefs)$"
)
MOUNT_TIMEOUT = 30.0

FILESYSTEM_SUBSYSTEM = "filesystem"
FILESYSTEM_LABEL_NAMES = ("device", "mountpoint", "fstype")


def _fs_desc(name: str, help_text: str) -> Desc:
    return Desc(
        build_fq_name(NAMESPACE, FILESYSTEM_SUBSYSTEM, name), help_text, FILESYSTEM_LABEL_NAMES
    )


SIZE_DESC = _fs_desc("size_bytes", "Filesystem size in bytes.")
FREE_DESC = _fs_desc("free_bytes", "Filesystem free space in bytes.")
AVAIL_DESC = _fs_desc("avail_bytes", "Filesystem space available to non-root users in bytes.")
FILES_DESC = _fs_desc("files", "Filesystem total file nodes.")
FILES_FREE_DESC = _fs_desc("files_free", "Filesystem total free file nodes.")
RO_DESC = _fs_desc("readonly", "Filesystem read-only status.")
DEVICE_ERROR_DESC = _fs_desc(
    "device_error",
    "Whether an error occurred while getting statistics for the given device.",
)

_stuck_mounts: set[str] = set()
_stuck_lock = threading.Lock()


@dataclass(frozen=True)
class FilesystemLabels:
    """Identity of one mounted filesystem."""

    device: str
    mount_point: str
    fs_type: str
    options: str = ""


@dataclass(frozen=True)
class FilesystemStats:
    """Usage figures of one mounted filesystem."""

    labels: FilesystemLabels
    size: float = 0.0
    free: float = 0.0
    avail: float = 0.0
    files: float = 0.0
    files_free: float = 0.0
    ro: float = 0.0
    device_error: float = 0.0


def parse_filesystem_labels(stream: Iterable[str]) -> list[FilesystemLabels]:
    """Parse a mounts table into filesystem labels."""
    filesystems: list[FilesystemLabels] = []
    for line in stream:
        parts = line.split()
        if len(parts) < 4:
            raise ValueError(f"malformed mount point information: {line.rstrip(chr(10))!r}")
        # Translate the fstab(5) escapes for space and tab.
        mount_point = parts[1].replace("\\040", " ").replace("\\011", "\t")
        filesystems.append(
            FilesystemLabels(
                device=parts[0],
                mount_point=rootfs_strip_prefix(mount_point),
                fs_type=parts[2],
                options=parts[3],
            )
        )
    return filesystems


def mount_point_details() -> list[FilesystemLabels]:
    """Read the mounts of process 1, falling back to the system mounts."""
    try:
        stream = open(proc_file_path("1/mounts"), encoding="utf-8")
    except FileNotFoundError as err:
        # /proc/1/mounts may be hidden by hidepid.
        log.debug("Got %r reading root mounts, falling back to system mounts", err)
        stream = open(proc_file_path("mounts"), encoding="utf-8")
    with stream:
        return parse_filesystem_labels(stream)


def _mark_stuck(mount_point: str, success: threading.Event) -> None:
    with _stuck_lock:
        if not success.is_set():
            log.debug(
                "Mount point %r timed out, it is being labeled as stuck and will not be monitored",
                mount_point,
            )
            _stuck_mounts.add(mount_point)


class FilesystemCollector(Collector):
    """Exposes size, free space and inode counts of mounted filesystems."""

    def __init__(
        self,
        ignored_mount_points: str = DEFAULT_IGNORED_MOUNT_POINTS,
        ignored_fs_types: str = DEFAULT_IGNORED_FS_TYPES,
    ) -> None:
        self.ignored_mount_points_pattern = re.compile(ignored_mount_points)
        self.ignored_fs_types_pattern = re.compile(ignored_fs_types)

    def _statfs(self, labels: FilesystemLabels) -> os.statvfs_result | None:
        success = threading.Event()
        watcher = threading.Timer(MOUNT_TIMEOUT, _mark_stuck, args=(labels.mount_point, success))
        watcher.daemon = True
        watcher.start()
        path = rootfs_file_path(labels.mount_point)
        try:
            return os.statvfs(path)
        except OSError as err:
            log.debug("Error on statfs() system call for %r: %s", path, err)
            return None
        finally:
            with _stuck_lock:
                success.set()
                if labels.mount_point in _stuck_mounts:
                    log.debug(
                        "Mount point %r has recovered, monitoring will resume", labels.mount_point
                    )
                    _stuck_mounts.discard(labels.mount_point)
            watcher.cancel()

    def get_stats(self) -> list[FilesystemStats]:
        stats: list[FilesystemStats] = []
        for labels in mount_point_details():
            if self.ignored_mount_points_pattern.search(labels.mount_point):
                log.debug("Ignoring mount point: %s", labels.mount_point)
                continue
            if self.ignored_fs_types_pattern.search(labels.fs_type):
                log.debug("Ignoring fs type: %s", labels.fs_type)
                continue
            with _stuck_lock:
                stuck = labels.mount_point in _stuck_mounts
            if stuck:
                log.debug("Mount point %r is in an unresponsive state", labels.mount_point)
                stats.append(FilesystemStats(labels, device_error=1.0))
                continue

            result = self._statfs(labels)
            if result is None:
                stats.append(FilesystemStats(labels, device_error=1.0))
                continue

            ro = 1.0 if "ro" in labels.options.split(",") else 0.0
            block = float(result.f_frsize or result.f_bsize)
            stats.append(
                FilesystemStats(
                    labels,
                    size=result.f_blocks * block,
                    free=result.f_bfree * block,
                    avail=result.f_bavail * block,
                    files=float(result.f_files),
                    files_free=float(result.f_ffree),
                    ro=ro,
                )
            )
        return stats

    def update(self) -> Iterator[Metric]:
        seen: set[FilesystemLabels] = set()
        for s in self.get_stats():
            if s.labels in seen:
                continue
            seen.add(s.labels)
            label_values = (s.labels.device, s.labels.mount_point, s.labels.fs_type)
            yield DEVICE_ERROR_DESC.metric(ValueType.GAUGE, s.device_error, *label_values)
            if s.device_error > 0:
                continue
            yield SIZE_DESC.metric(ValueType.GAUGE, s.size, *label_values)
            yield FREE_DESC.metric(ValueType.GAUGE, s.free, *label_values)
            yield AVAIL_DESC.metric(ValueType.GAUGE, s.avail, *label_values)
            yield FILES_DESC.metric(ValueType.GAUGE, s.files, *label_values)
            yield FILES_FREE_DESC.metric(ValueType.GAUGE, s.files_free, *label_values)
            yield RO_DESC.metric(ValueType.GAUGE, s.ro, *label_values)


register_collector("filesystem", DEFAULT_ENABLED, FilesystemCollector)