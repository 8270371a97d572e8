"""Interrupt counts per CPU from /proc/interrupts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator

from .helpers import proc_file_path
from .metrics import NAMESPACE, Desc, Metric, TypedDesc, ValueType
from .registry import DEFAULT_DISABLED, Collector, register_collector

INTERRUPT_LABEL_NAMES = ("cpu", "type", "info", "devices")

INTERRUPTS_DESC = TypedDesc(
    Desc(NAMESPACE + "_interrupts_total", "Interrupt details.", INTERRUPT_LABEL_NAMES),
    ValueType.COUNTER,
)

_INTEGER = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class Interrupt:
    """One interrupt line: description, devices and raw per-CPU counts."""

    info: str
    devices: str
    values: tuple[str, ...]


def parse_interrupts(stream: Iterable[str]) -> dict[str, Interrupt]:
    """Parse the interrupts table; lines without per-CPU columns are skipped."""
    lines = iter(stream)
    header = next(lines, None)
    if header is None:
        raise ValueError("interrupts empty")
    cpu_num = len(header.split())

    interrupts: dict[str, Interrupt] = {}
    for line in lines:
        parts = line.split()
        if len(parts) < cpu_num + 2:
            continue
        name = parts[0][:-1]
        values = tuple(parts[1 : cpu_num + 1])
        if _INTEGER.fullmatch(name):
            interrupts[name] = Interrupt(
                info=parts[cpu_num + 1],
                devices=" ".join(parts[cpu_num + 2 :]),
                values=values,
            )
        else:
            interrupts[name] = Interrupt(
                info=" ".join(parts[cpu_num + 1 :]),
                devices="",
                values=values,
            )
    return interrupts


def get_interrupts() -> dict[str, Interrupt]:
    """Read and parse the kernel interrupts file."""
    with open(proc_file_path("interrupts"), encoding="utf-8") as stream:
        return parse_interrupts(stream)


class InterruptsCollector(Collector):
    """Exposes interrupt counts per CPU and interrupt."""

    def update(self) -> Iterator[Metric]:
        try:
            interrupts = get_interrupts()
        except (OSError, ValueError) as err:
            raise RuntimeError(f"couldn't get interrupts: {err}") from err
        for name, interrupt in interrupts.items():
            for cpu, text in enumerate(interrupt.values):
                try:
                    value = float(text)
                except ValueError as err:
                    raise ValueError(f"invalid value {text} in interrupts: {err}") from err
                yield INTERRUPTS_DESC.metric(
                    value, str(cpu), name, interrupt.info, interrupt.devices
                )


register_collector("interrupts", DEFAULT_DISABLED, InterruptsCollector)