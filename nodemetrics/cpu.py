"""CPU time and thermal throttle statistics."""

from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass
from typing import Iterable, Iterator

from .helpers import proc_file_path, read_uint_from_file, sys_file_path
from .metrics import (
    CPU_SUBSYSTEM,
    NAMESPACE,
    NODE_CPU_SECONDS_DESC,
    Desc,
    Metric,
    ValueType,
    build_fq_name,
)
from .registry import DEFAULT_ENABLED, Collector, register_collector

log = logging.getLogger(__name__)

USER_HZ = 100.0

CPU_GUEST_DESC = Desc(
    build_fq_name(NAMESPACE, CPU_SUBSYSTEM, "guest_seconds_total"),
    "Seconds the cpus spent in guests (VMs) for each mode.",
    ("cpu", "mode"),
)
CPU_CORE_THROTTLE_DESC = Desc(
    build_fq_name(NAMESPACE, CPU_SUBSYSTEM, "core_throttles_total"),
    "Number of times this cpu core has been throttled.",
    ("package", "core"),
)
CPU_PACKAGE_THROTTLE_DESC = Desc(
    build_fq_name(NAMESPACE, CPU_SUBSYSTEM, "package_throttles_total"),
    "Number of times this cpu package has been throttled.",
    ("package",),
)

_FIELDS = (
    "user",
    "nice",
    "system",
    "idle",
    "iowait",
    "irq",
    "softirq",
    "steal",
    "guest",
    "guest_nice",
)


@dataclass(frozen=True)
class CPUStat:
    """Seconds one CPU spent in each mode."""

    user: float = 0.0
    nice: float = 0.0
    system: float = 0.0
    idle: float = 0.0
    iowait: float = 0.0
    irq: float = 0.0
    softirq: float = 0.0
    steal: float = 0.0
    guest: float = 0.0
    guest_nice: float = 0.0


def parse_cpu_stats(stream: Iterable[str]) -> list[CPUStat]:
    """Parse the per-CPU lines of a stat file, indexed by CPU number."""
    cpus: list[CPUStat] = []
    for line in stream:
        parts = line.split()
        if not parts or not parts[0].startswith("cpu") or parts[0] == "cpu":
            continue
        suffix = parts[0][3:]
        if not suffix.isdigit():
            raise ValueError(f"couldn't parse {line.strip()!r} (cpu)")
        cpu_id = int(suffix)
        try:
            values = [float(v) / USER_HZ for v in parts[1 : 1 + len(_FIELDS)]]
        except ValueError as err:
            raise ValueError(f"couldn't parse {line.strip()!r} (cpu): {err}") from err
        while len(cpus) <= cpu_id:
            cpus.append(CPUStat())
        cpus[cpu_id] = CPUStat(**dict(zip(_FIELDS, values)))
    return cpus


class CPUCollector(Collector):
    """Exposes per-CPU mode times and thermal throttle counts."""

    def update(self) -> Iterator[Metric]:
        yield from self.update_stat()
        yield from self.update_thermal_throttle()

    def update_stat(self) -> Iterator[Metric]:
        with open(proc_file_path("stat"), encoding="utf-8") as stream:
            stats = parse_cpu_stats(stream)
        for cpu_id, stat in enumerate(stats):
            cpu = str(cpu_id)
            for mode, value in (
                ("user", stat.user),
                ("nice", stat.nice),
                ("system", stat.system),
                ("idle", stat.idle),
                ("iowait", stat.iowait),
                ("irq", stat.irq),
                ("softirq", stat.softirq),
                ("steal", stat.steal),
            ):
                yield NODE_CPU_SECONDS_DESC.metric(ValueType.COUNTER, value, cpu, mode)
            # Guest time is also included in user and nice.
            yield CPU_GUEST_DESC.metric(ValueType.COUNTER, stat.guest, cpu, "user")
            yield CPU_GUEST_DESC.metric(ValueType.COUNTER, stat.guest_nice, cpu, "nice")

    def update_thermal_throttle(self) -> Iterator[Metric]:
        pattern = os.path.join(glob.escape(sys_file_path("devices/system/cpu")), "cpu[0-9]*")
        package_throttles: dict[int, int] = {}
        package_core_throttles: dict[int, dict[int, int]] = {}

        for cpu in sorted(glob.glob(pattern)):
            try:
                package_id = read_uint_from_file(os.path.join(cpu, "topology", "physical_package_id"))
            except (OSError, ValueError):
                log.debug("CPU %s is missing physical_package_id", cpu)
                continue
            try:
                core_id = read_uint_from_file(os.path.join(cpu, "topology", "core_id"))
            except (OSError, ValueError):
                log.debug("CPU %s is missing core_id", cpu)
                continue

            # Core throttles come first: some systems only present those.
            cores = package_core_throttles.setdefault(package_id, {})
            if core_id not in cores:
                try:
                    cores[core_id] = read_uint_from_file(
                        os.path.join(cpu, "thermal_throttle", "core_throttle_count")
                    )
                except (OSError, ValueError):
                    log.debug("CPU %s is missing core_throttle_count", cpu)

            if package_id not in package_throttles:
                try:
                    package_throttles[package_id] = read_uint_from_file(
                        os.path.join(cpu, "thermal_throttle", "package_throttle_count")
                    )
                except (OSError, ValueError):
                    log.debug("CPU %s is missing package_throttle_count", cpu)

        for package_id, count in package_throttles.items():
            yield CPU_PACKAGE_THROTTLE_DESC.metric(ValueType.COUNTER, count, str(package_id))
        for package_id, cores in package_core_throttles.items():
            for core_id, count in cores.items():
                yield CPU_CORE_THROTTLE_DESC.metric(
                    ValueType.COUNTER, count, str(package_id), str(core_id)
                )


register_collector("cpu", DEFAULT_ENABLED, CPUCollector)