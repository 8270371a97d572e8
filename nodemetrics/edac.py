"""Memory controller error counts from EDAC."""

from __future__ import annotations

import glob
import os
import re
from typing import Iterator

from .helpers import read_uint_from_file, sys_file_path
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name
from .registry import DEFAULT_ENABLED, Collector, register_collector

EDAC_SUBSYSTEM = "edac"

_CONTROLLER_RE = re.compile(r".*devices/system/edac/mc/mc([0-9]*)")
_CSROW_RE = re.compile(r".*devices/system/edac/mc/mc[0-9]*/csrow([0-9]*)")

CE_COUNT_DESC = Desc(
    build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "correctable_errors_total"),
    "Total correctable memory errors.",
    ("controller",),
)
UE_COUNT_DESC = Desc(
    build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "uncorrectable_errors_total"),
    "Total uncorrectable memory errors.",
    ("controller",),
)
CSROW_CE_COUNT_DESC = Desc(
    build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "csrow_correctable_errors_total"),
    "Total correctable memory errors for this csrow.",
    ("controller", "csrow"),
)
CSROW_UE_COUNT_DESC = Desc(
    build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "csrow_uncorrectable_errors_total"),
    "Total uncorrectable memory errors for this csrow.",
    ("controller", "csrow"),
)


def _read_count(path: str, what: str) -> int:
    try:
        return read_uint_from_file(path)
    except (OSError, ValueError) as err:
        raise RuntimeError(f"couldn't get {what}: {err}") from err


class EdacCollector(Collector):
    """Exposes correctable and uncorrectable memory errors per controller and csrow."""

    def update(self) -> Iterator[Metric]:
        base = glob.escape(sys_file_path("devices/system/edac/mc"))
        for controller in sorted(glob.glob(os.path.join(base, "mc[0-9]*"))):
            match = _CONTROLLER_RE.search(controller)
            if match is None:
                raise ValueError(f"controller string didn't match regexp: {controller}")
            number = match.group(1)

            def count(name: str) -> int:
                return _read_count(
                    os.path.join(controller, name), f"{name} for controller {number}"
                )

            yield CE_COUNT_DESC.metric(ValueType.COUNTER, count("ce_count"), number)
            yield CSROW_CE_COUNT_DESC.metric(
                ValueType.COUNTER, count("ce_noinfo_count"), number, "unknown"
            )
            yield UE_COUNT_DESC.metric(ValueType.COUNTER, count("ue_count"), number)
            yield CSROW_UE_COUNT_DESC.metric(
                ValueType.COUNTER, count("ue_noinfo_count"), number, "unknown"
            )

            pattern = os.path.join(glob.escape(controller), "csrow[0-9]*")
            for csrow in sorted(glob.glob(pattern)):
                row_match = _CSROW_RE.search(csrow)
                if row_match is None:
                    raise ValueError(f"csrow string didn't match regexp: {csrow}")
                row = row_match.group(1)
                for name, desc in (("ce_count", CSROW_CE_COUNT_DESC), ("ue_count", CSROW_UE_COUNT_DESC)):
                    value = _read_count(
                        os.path.join(csrow, name),
                        f"{name} for controller/csrow {number}/{row}",
                    )
                    yield desc.metric(ValueType.COUNTER, value, number, row)


register_collector("edac", DEFAULT_ENABLED, EdacCollector)