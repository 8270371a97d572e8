"""Filesystem locations and small file-reading helpers."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from pathlib import Path

_UINT64_MAX = 2**64 - 1
_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class Paths:
    """Mount points of procfs, sysfs and the root filesystem."""

    procfs: str = "/proc"
    sysfs: str = "/sys"
    rootfs: str = "/"


_paths = Paths()


def configure_paths(procfs: str = "/proc", sysfs: str = "/sys", rootfs: str = "/") -> Paths:
    """Set the locations used by every collector and return them."""
    global _paths
    _paths = Paths(str(procfs), str(sysfs), str(rootfs))
    return _paths


def _join(base: str, name: str) -> str:
    return posixpath.normpath(posixpath.join(base, name.lstrip("/")))


def proc_file_path(name: str) -> str:
    return _join(_paths.procfs, name)


def sys_file_path(name: str) -> str:
    return _join(_paths.sysfs, name)


def rootfs_file_path(name: str) -> str:
    return _join(_paths.rootfs, name)


def rootfs_strip_prefix(path: str) -> str:
    """Remove the configured rootfs prefix from a path seen inside it."""
    if _paths.rootfs == "/":
        return path
    stripped = path[len(_paths.rootfs):] if path.startswith(_paths.rootfs) else path
    return stripped or "/"


def read_uint_from_file(path: str | Path) -> int:
    """Read an unsigned 64-bit decimal integer from a file."""
    text = Path(path).read_text().strip()
    if not _DIGITS.fullmatch(text):
        raise ValueError(f"invalid unsigned integer {text!r} in {path}")
    value = int(text)
    if value > _UINT64_MAX:
        raise ValueError(f"value {text!r} in {path} out of range")
    return value