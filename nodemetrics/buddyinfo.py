"""Free memory block counts per node, zone and order from /proc/buddyinfo."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Iterable, Iterator

from .helpers import proc_file_path
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name
from .registry import DEFAULT_DISABLED, Collector, register_collector

log = logging.getLogger(__name__)

BUDDYINFO_SUBSYSTEM = "buddyinfo"

BUDDYINFO_DESC = Desc(
    build_fq_name(NAMESPACE, BUDDYINFO_SUBSYSTEM, "blocks"),
    "Count of free blocks according to size.",
    ("node", "zone", "size"),
)


@dataclass(frozen=True)
class BuddyInfo:
    """Free block counts of one memory zone, indexed by block order."""

    node: str
    zone: str
    sizes: tuple[float, ...]


def parse_buddy_info(stream: Iterable[str]) -> list[BuddyInfo]:
    """Parse buddyinfo lines of the form 'Node N, zone NAME c0 c1 ...'."""
    result: list[BuddyInfo] = []
    bucket_count: int | None = None
    for line in stream:
        parts = line.split()
        if len(parts) < 4:
            raise ValueError("invalid number of fields when parsing buddyinfo")
        node = parts[1].rstrip(",")
        zone = parts[3].rstrip(",")
        counts = parts[4:]
        if bucket_count is None:
            bucket_count = len(counts)
        elif bucket_count != len(counts):
            raise ValueError(
                "mismatch in number of buddyinfo buckets, previous count "
                f"{bucket_count}, new count {len(counts)}"
            )
        try:
            sizes = tuple(float(c) for c in counts)
        except ValueError as err:
            raise ValueError(f"invalid value in buddyinfo: {err}") from err
        result.append(BuddyInfo(node, zone, sizes))
    return result


class BuddyinfoCollector(Collector):
    """Exposes free block counts per node, zone and block order."""

    def __init__(self) -> None:
        procfs = proc_file_path("")
        if not os.path.isdir(procfs):
            raise RuntimeError(f"failed to open procfs: {procfs} is not a directory")

    def update(self) -> Iterator[Metric]:
        try:
            with open(proc_file_path("buddyinfo"), encoding="utf-8") as stream:
                entries = parse_buddy_info(stream)
        except (OSError, ValueError) as err:
            raise RuntimeError(f"couldn't get buddyinfo: {err}") from err

        log.debug("Set node_buddy: %r", entries)
        for entry in entries:
            for size, value in enumerate(entry.sizes):
                yield BUDDYINFO_DESC.metric(ValueType.GAUGE, value, entry.node, entry.zone, str(size))


register_collector("buddyinfo", DEFAULT_DISABLED, BuddyinfoCollector)