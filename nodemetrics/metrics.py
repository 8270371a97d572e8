"""Metric descriptors, samples and the text exposition format."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

NAMESPACE = "node"
CPU_SUBSYSTEM = "cpu"
DISK_SUBSYSTEM = "disk"


class ValueType(enum.Enum):
    """Kind of a metric sample."""

    COUNTER = "counter"
    GAUGE = "gauge"
    UNTYPED = "untyped"


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts with underscores; an empty name yields ''."""
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class Desc:
    """Describes a metric: its fully qualified name, help text and label names."""

    fq_name: str
    help: str
    variable_labels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "variable_labels", tuple(self.variable_labels))

    def metric(self, value_type: ValueType, value: float, *args: str) -> "Metric":
        """Create a sample for this descriptor with the given label values."""
        if len(args) != len(self.variable_labels):
            raise ValueError(
                f"inconsistent label cardinality: expected {len(self.variable_labels)} "
                f"label values but got {len(args)} for {self.fq_name}"
            )
        return Metric(self, value_type, float(value), tuple(str(a) for a in args))


@dataclass(frozen=True)
class Metric:
    """A single sample of a described metric."""

    desc: Desc
    value_type: ValueType
    value: float
    label_values: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.desc.fq_name

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.desc.variable_labels, self.label_values))


@dataclass(frozen=True)
class TypedDesc:
    """A descriptor bound to a fixed value type."""

    desc: Desc
    value_type: ValueType

    def metric(self, value: float, *args: str) -> Metric:
        return self.desc.metric(self.value_type, value, *args)


NODE_CPU_SECONDS_DESC = Desc(
    build_fq_name(NAMESPACE, CPU_SUBSYSTEM, "seconds_total"),
    "Seconds the cpus spent in each mode.",
    ("cpu", "mode"),
)

DISK_LABEL_NAMES = ("device",)

READS_COMPLETED_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "reads_completed_total"),
    "The total number of reads completed successfully.",
    DISK_LABEL_NAMES,
)
READ_BYTES_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "read_bytes_total"),
    "The total number of bytes read successfully.",
    DISK_LABEL_NAMES,
)
WRITES_COMPLETED_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "writes_completed_total"),
    "The total number of writes completed successfully.",
    DISK_LABEL_NAMES,
)
WRITTEN_BYTES_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "written_bytes_total"),
    "The total number of bytes written successfully.",
    DISK_LABEL_NAMES,
)
IO_TIME_SECONDS_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "io_time_seconds_total"),
    "Total seconds spent doing I/Os.",
    DISK_LABEL_NAMES,
)
READ_TIME_SECONDS_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "read_time_seconds_total"),
    "The total number of seconds spent by all reads.",
    DISK_LABEL_NAMES,
)
WRITE_TIME_SECONDS_DESC = Desc(
    build_fq_name(NAMESPACE, DISK_SUBSYSTEM, "write_time_seconds_total"),
    "This is the total number of seconds spent by all writes.",
    DISK_LABEL_NAMES,
)


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "0"
    sign, digit_tuple, exponent = Decimal(repr(value)).as_tuple()
    digits = list(digit_tuple)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    text = "".join(str(d) for d in digits)
    prefix = "-" if sign else ""
    point = len(text) + exponent
    exp10 = point - 1
    if exp10 < -4 or exp10 >= 6:
        mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
        exp_sign = "+" if exp10 >= 0 else "-"
        return f"{prefix}{mantissa}e{exp_sign}{abs(exp10):02d}"
    if point <= 0:
        return f"{prefix}0.{'0' * -point}{text}"
    if point >= len(text):
        return f"{prefix}{text}{'0' * (point - len(text))}"
    return f"{prefix}{text[:point]}.{text[point:]}"


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _format_sample(metric: Metric) -> str:
    name = metric.desc.fq_name
    if metric.label_values:
        pairs = ",".join(
            f'{label}="{_escape_label(value)}"'
            for label, value in zip(metric.desc.variable_labels, metric.label_values)
        )
        name = f"{name}{{{pairs}}}"
    return f"{name} {_format_float(metric.value)}"


def format_metrics(metrics: Iterable[Metric]) -> str:
    """Render samples in the text exposition format, families sorted by name."""
    families: dict[str, list[Metric]] = {}
    for metric in metrics:
        families.setdefault(metric.desc.fq_name, []).append(metric)
    lines: list[str] = []
    for name in sorted(families):
        samples = families[name]
        first = samples[0]
        lines.append(f"# HELP {name} {_escape_help(first.desc.help)}")
        lines.append(f"# TYPE {name} {first.value_type.value}")
        lines.extend(
            _format_sample(m) for m in sorted(samples, key=lambda s: s.label_values)
        )
    return "".join(line + "\n" for line in lines)