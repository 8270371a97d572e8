"""DRBD device statistics from /proc/drbd."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator

from .helpers import proc_file_path
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name
from .registry import DEFAULT_DISABLED, Collector, register_collector

log = logging.getLogger(__name__)

_UINT64_MAX = 2**64 - 1
_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class _NumericalMetric:
    desc: Desc
    value_type: ValueType
    multiplier: float


@dataclass(frozen=True)
class _StringPairMetric:
    desc: Desc
    value_okay: str

    def is_okay(self, value: str) -> float:
        return 1.0 if value == self.value_okay else 0.0


def _numerical(name: str, help_text: str, value_type: ValueType, multiplier: float) -> _NumericalMetric:
    return _NumericalMetric(
        Desc(build_fq_name(NAMESPACE, "drbd", name), help_text, ("device",)),
        value_type,
        multiplier,
    )


def _string_pair(name: str, help_text: str, value_okay: str) -> _StringPairMetric:
    return _StringPairMetric(
        Desc(build_fq_name(NAMESPACE, "drbd", name), help_text, ("device", "node")),
        value_okay,
    )


NUMERICAL_METRICS: dict[str, _NumericalMetric] = {
    "ns": _numerical("network_sent_bytes_total", "Total number of bytes sent via the network.", ValueType.COUNTER, 1024),
    "nr": _numerical("network_received_bytes_total", "Total number of bytes received via the network.", ValueType.COUNTER, 1),
    "dw": _numerical("disk_written_bytes_total", "Net data written on local hard disk; in bytes.", ValueType.COUNTER, 1024),
    "dr": _numerical("disk_read_bytes_total", "Net data read from local hard disk; in bytes.", ValueType.COUNTER, 1024),
    "al": _numerical("activitylog_writes_total", "Number of updates of the activity log area of the meta data.", ValueType.COUNTER, 1),
    "bm": _numerical("bitmap_writes_total", "Number of updates of the bitmap area of the meta data.", ValueType.COUNTER, 1),
    "lo": _numerical("local_pending", "Number of open requests to the local I/O sub-system.", ValueType.GAUGE, 1),
    "pe": _numerical("remote_pending", "Number of requests sent to the peer, but that have not yet been answered by the latter.", ValueType.GAUGE, 1),
    "ua": _numerical("remote_unacknowledged", "Number of requests received by the peer via the network connection, but that have not yet been answered.", ValueType.GAUGE, 1),
    "ap": _numerical("application_pending", "Number of block I/O requests forwarded to DRBD, but not yet answered by DRBD.", ValueType.GAUGE, 1),
    "ep": _numerical("epochs", "Number of Epochs currently on the fly.", ValueType.GAUGE, 1),
    "oos": _numerical("out_of_sync_bytes", "Amount of data known to be out of sync; in bytes.", ValueType.GAUGE, 1024),
}

STRING_PAIR_METRICS: dict[str, _StringPairMetric] = {
    "ro": _string_pair("node_role_is_primary", "Whether the role of the node is in the primary state.", "Primary"),
    "ds": _string_pair("disk_state_is_up_to_date", "Whether the disk of the node is up to date.", "UpToDate"),
}

DRBD_CONNECTED_DESC = Desc(
    build_fq_name(NAMESPACE, "drbd", "connected"),
    "Whether DRBD is connected to the peer.",
    ("device",),
)


def _device_id(text: str) -> int | None:
    if _DIGITS.fullmatch(text):
        value = int(text)
        if value <= _UINT64_MAX:
            return value
    return None


def parse_drbd(stream: Iterable[str]) -> Iterator[Metric]:
    """Yield metrics for the key:value words of a /proc/drbd listing."""
    device = "unknown"
    for field in (word for line in stream for word in line.split()):
        kv = field.split(":")
        if len(kv) != 2:
            log.debug("Don't know how to process string %r", field)
            continue
        key, raw = kv
        device_id = _device_id(key)
        if device_id is not None and raw == "":
            device = f"drbd{device_id}"
        elif key in NUMERICAL_METRICS:
            metric = NUMERICAL_METRICS[key]
            value = float(raw)
            yield metric.desc.metric(metric.value_type, value * metric.multiplier, device)
        elif key in STRING_PAIR_METRICS:
            pair = STRING_PAIR_METRICS[key]
            values = raw.split("/")
            if len(values) < 2:
                raise ValueError(f"malformed string pair {field!r}")
            yield pair.desc.metric(ValueType.GAUGE, pair.is_okay(values[0]), device, "local")
            yield pair.desc.metric(ValueType.GAUGE, pair.is_okay(values[1]), device, "remote")
        elif key == "cs":
            connected = 1.0 if raw == "Connected" else 0.0
            yield DRBD_CONNECTED_DESC.metric(ValueType.GAUGE, connected, device)
        else:
            log.debug("Don't know how to process key-value pair [%s: %r]", key, raw)


class DRBDCollector(Collector):
    """Exposes DRBD statistics; yields nothing if DRBD is not loaded."""

    def update(self) -> Iterator[Metric]:
        stats_file = proc_file_path("drbd")
        try:
            stream = open(stats_file, encoding="utf-8")
        except FileNotFoundError as err:
            log.debug("Not collecting DRBD statistics, as %s does not exist: %s", stats_file, err)
            return
        with stream:
            yield from parse_drbd(stream)


register_collector("drbd", DEFAULT_DISABLED, DRBDCollector)