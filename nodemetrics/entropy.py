"""Available kernel entropy."""

from __future__ import annotations

from typing import Iterator

from .helpers import proc_file_path, read_uint_from_file
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name
from .registry import DEFAULT_ENABLED, Collector, register_collector

ENTROPY_AVAILABLE_DESC = Desc(
    build_fq_name(NAMESPACE, "", "entropy_available_bits"),
    "Bits of available entropy.",
)


class EntropyCollector(Collector):
    """Exposes the bits of entropy available to the kernel."""

    def update(self) -> Iterator[Metric]:
        try:
            value = read_uint_from_file(proc_file_path("sys/kernel/random/entropy_avail"))
        except (OSError, ValueError) as err:
            raise RuntimeError(f"couldn't get entropy_avail: {err}") from err
        yield ENTROPY_AVAILABLE_DESC.metric(ValueType.GAUGE, value)


register_collector("entropy", DEFAULT_ENABLED, EntropyCollector)