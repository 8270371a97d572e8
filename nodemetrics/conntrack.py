"""Connection tracking table usage."""

from __future__ import annotations

from typing import Iterator

from .helpers import proc_file_path, read_uint_from_file
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name
from .registry import DEFAULT_ENABLED, Collector, register_collector

CONNTRACK_CURRENT_DESC = Desc(
    build_fq_name(NAMESPACE, "", "nf_conntrack_entries"),
    "Number of currently allocated flow entries for connection tracking.",
)
CONNTRACK_LIMIT_DESC = Desc(
    build_fq_name(NAMESPACE, "", "nf_conntrack_entries_limit"),
    "Maximum size of connection tracking table.",
)


class ConntrackCollector(Collector):
    """Exposes the current and maximum number of conntrack entries."""

    def update(self) -> Iterator[Metric]:
        try:
            value = read_uint_from_file(proc_file_path("sys/net/netfilter/nf_conntrack_count"))
        except (OSError, ValueError):
            # Conntrack is probably not loaded into the kernel.
            return
        yield CONNTRACK_CURRENT_DESC.metric(ValueType.GAUGE, value)

        try:
            value = read_uint_from_file(proc_file_path("sys/net/netfilter/nf_conntrack_max"))
        except (OSError, ValueError):
            return
        yield CONNTRACK_LIMIT_DESC.metric(ValueType.GAUGE, value)


register_collector("conntrack", DEFAULT_ENABLED, ConntrackCollector)