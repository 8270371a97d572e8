"""ARP table entries per network device."""

from __future__ import annotations

from typing import Iterable, Iterator

from .helpers import proc_file_path
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name
from .registry import DEFAULT_ENABLED, Collector, register_collector

ARP_ENTRIES_DESC = Desc(
    build_fq_name(NAMESPACE, "arp", "entries"),
    "ARP entries by device",
    ("device",),
)


def parse_arp_entries(stream: Iterable[str]) -> dict[str, int]:
    """Count ARP table rows per device; the header row is skipped."""
    entries: dict[str, int] = {}
    for line in stream:
        columns = line.split()
        if len(columns) < 6:
            raise ValueError("unexpected ARP table format")
        if columns[0] != "IP":
            device = columns[-1]
            entries[device] = entries.get(device, 0) + 1
    return entries


def get_arp_entries() -> dict[str, int]:
    """Read and count the entries of the kernel ARP table."""
    with open(proc_file_path("net/arp"), encoding="utf-8") as stream:
        return parse_arp_entries(stream)


class ARPCollector(Collector):
    """Exposes the number of ARP entries for every device."""

    def update(self) -> Iterator[Metric]:
        try:
            entries = get_arp_entries()
        except (OSError, ValueError) as err:
            raise RuntimeError(f"could not get ARP entries: {err}") from err
        for device, count in entries.items():
            yield ARP_ENTRIES_DESC.metric(ValueType.GAUGE, count, device)


register_collector("arp", DEFAULT_ENABLED, ARPCollector)