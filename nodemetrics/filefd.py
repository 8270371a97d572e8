"""Allocated and maximum file descriptors."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

from .helpers import proc_file_path
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name
from .registry import DEFAULT_ENABLED, Collector, register_collector

FILEFD_SUBSYSTEM = "filefd"


def parse_file_fd_stats(filename: str | os.PathLike) -> dict[str, str]:
    """Read the file-nr file and return its allocated and maximum fields."""
    content = Path(filename).read_bytes().strip()
    parts = content.split(b"\t")
    if len(parts) < 3:
        raise ValueError(f"unexpected number of file stats in {str(filename)!r}")
    # The second value is always zero since Linux 2.6 and is skipped.
    return {
        "allocated": parts[0].decode(),
        "maximum": parts[2].decode(),
    }


class FileFDStatCollector(Collector):
    """Exposes file descriptor statistics from file-nr."""

    def update(self) -> Iterator[Metric]:
        try:
            stats = parse_file_fd_stats(proc_file_path("sys/fs/file-nr"))
        except (OSError, ValueError) as err:
            raise RuntimeError(f"couldn't get file-nr: {err}") from err
        for name, text in stats.items():
            try:
                value = float(text)
            except ValueError as err:
                raise ValueError(f"invalid value {text} in file-nr: {err}") from err
            desc = Desc(
                build_fq_name(NAMESPACE, FILEFD_SUBSYSTEM, name),
                f"File descriptor statistics: {name}.",
            )
            yield desc.metric(ValueType.GAUGE, value)


register_collector(FILEFD_SUBSYSTEM, DEFAULT_ENABLED, FileFDStatCollector)