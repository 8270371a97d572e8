"""Block device I/O statistics from /proc/diskstats."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator

from .helpers import proc_file_path
from .metrics import (
    DISK_LABEL_NAMES,
    DISK_SUBSYSTEM,
    IO_TIME_SECONDS_DESC,
    NAMESPACE,
    READ_BYTES_DESC,
    READ_TIME_SECONDS_DESC,
    READS_COMPLETED_DESC,
    WRITE_TIME_SECONDS_DESC,
    WRITES_COMPLETED_DESC,
    WRITTEN_BYTES_DESC,
    Desc,
    Metric,
    ValueType,
    build_fq_name,
)
from .registry import DEFAULT_ENABLED, Collector, register_collector

log = logging.getLogger(__name__)

DISK_SECTOR_SIZE = 512
DISKSTATS_FILENAME = "diskstats"
DEFAULT_IGNORED_DEVICES = r"^(ram|loop|fd|(h|s|v|xv)d[a-z]|nvme\d+n\d+p)\d+$"


@dataclass(frozen=True)
class TypedFactorDesc:
    """A typed descriptor whose values are scaled by a factor (0 means unscaled)."""

    desc: Desc
    value_type: ValueType
    factor: float = 0.0

    def metric(self, value: float, *args: str) -> Metric:
        if self.factor != 0:
            value *= self.factor
        return self.desc.metric(self.value_type, value, *args)


def _disk_desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, DISK_SUBSYSTEM, name), help_text, DISK_LABEL_NAMES)


DISKSTATS_DESCS: tuple[TypedFactorDesc, ...] = (
    TypedFactorDesc(READS_COMPLETED_DESC, ValueType.COUNTER),
    TypedFactorDesc(
        _disk_desc("reads_merged_total", "The total number of reads merged."),
        ValueType.COUNTER,
    ),
    TypedFactorDesc(READ_BYTES_DESC, ValueType.COUNTER, DISK_SECTOR_SIZE),
    TypedFactorDesc(READ_TIME_SECONDS_DESC, ValueType.COUNTER, 0.001),
    TypedFactorDesc(WRITES_COMPLETED_DESC, ValueType.COUNTER),
    TypedFactorDesc(
        _disk_desc("writes_merged_total", "The number of writes merged."),
        ValueType.COUNTER,
    ),
    TypedFactorDesc(WRITTEN_BYTES_DESC, ValueType.COUNTER, DISK_SECTOR_SIZE),
    TypedFactorDesc(WRITE_TIME_SECONDS_DESC, ValueType.COUNTER, 0.001),
    TypedFactorDesc(
        _disk_desc("io_now", "The number of I/Os currently in progress."),
        ValueType.GAUGE,
    ),
    TypedFactorDesc(IO_TIME_SECONDS_DESC, ValueType.COUNTER, 0.001),
    TypedFactorDesc(
        _disk_desc("io_time_weighted_seconds_total", "The weighted # of seconds spent doing I/Os."),
        ValueType.COUNTER,
        0.001,
    ),
    TypedFactorDesc(
        _disk_desc("discards_completed_total", "The total number of discards completed successfully."),
        ValueType.COUNTER,
    ),
    TypedFactorDesc(
        _disk_desc("discards_merged_total", "The total number of discards merged."),
        ValueType.COUNTER,
    ),
    TypedFactorDesc(
        _disk_desc("discarded_sectors_total", "The total number of sectors discarded successfully."),
        ValueType.COUNTER,
    ),
    TypedFactorDesc(
        _disk_desc("discard_time_seconds_total", "This is the total number of seconds spent by all discards."),
        ValueType.COUNTER,
        0.001,
    ),
)


def parse_disk_stats(stream: Iterable[str]) -> dict[str, list[str]]:
    """Map each device to its raw statistic fields (major, minor and name stripped)."""
    disk_stats: dict[str, list[str]] = {}
    for line in stream:
        parts = line.split()
        if len(parts) < 4:
            raise ValueError(
                f"invalid line in {proc_file_path(DISKSTATS_FILENAME)}: {line.rstrip(chr(10))}"
            )
        disk_stats[parts[2]] = parts[3:]
    return disk_stats


def get_disk_stats() -> dict[str, list[str]]:
    """Read and parse the kernel diskstats file."""
    with open(proc_file_path(DISKSTATS_FILENAME), encoding="utf-8") as stream:
        return parse_disk_stats(stream)


class DiskstatsCollector(Collector):
    """Exposes disk device statistics, skipping devices matching a pattern."""

    def __init__(self, ignored_devices: str = DEFAULT_IGNORED_DEVICES) -> None:
        self.ignored_devices_pattern = re.compile(ignored_devices, re.ASCII)
        self.descs = DISKSTATS_DESCS

    def update(self) -> Iterator[Metric]:
        try:
            disk_stats = get_disk_stats()
        except (OSError, ValueError) as err:
            raise RuntimeError(f"couldn't get diskstats: {err}") from err

        for dev, stats in disk_stats.items():
            if self.ignored_devices_pattern.search(dev):
                log.debug("Ignoring device: %s", dev)
                continue
            # Additional unrecognised fields are ignored.
            for desc, text in zip(self.descs, stats):
                try:
                    value = float(text)
                except ValueError as err:
                    raise ValueError(f"invalid value {text} in diskstats: {err}") from err
                yield desc.metric(value, dev)


register_collector("diskstats", DEFAULT_ENABLED, DiskstatsCollector)