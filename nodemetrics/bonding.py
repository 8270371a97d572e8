"""Configured and active slaves of bonding interfaces."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from .helpers import sys_file_path
from .metrics import NAMESPACE, Desc, Metric, TypedDesc, ValueType, build_fq_name
from .registry import DEFAULT_ENABLED, Collector, register_collector

log = logging.getLogger(__name__)

BONDING_SLAVES = TypedDesc(
    Desc(
        build_fq_name(NAMESPACE, "bonding", "slaves"),
        "Number of configured slaves per bonding interface.",
        ("master",),
    ),
    ValueType.GAUGE,
)
BONDING_ACTIVE = TypedDesc(
    Desc(
        build_fq_name(NAMESPACE, "bonding", "active"),
        "Number of active slaves per bonding interface.",
        ("master",),
    ),
    ValueType.GAUGE,
)


def _read_mii_status(master_dir: Path, slave: str) -> str:
    try:
        return (master_dir / f"lower_{slave}" / "bonding_slave" / "mii_status").read_text()
    except FileNotFoundError:
        # some older kernels use the slave_ prefix
        return (master_dir / f"slave_{slave}" / "bonding_slave" / "mii_status").read_text()


def read_bonding_stats(root: str | os.PathLike) -> dict[str, tuple[int, int]]:
    """Map each bonding master to (configured slaves, slaves whose link is up)."""
    root_path = Path(root)
    status: dict[str, tuple[int, int]] = {}
    for master in (root_path / "bonding_masters").read_text().split():
        master_dir = root_path / master
        slaves = (master_dir / "bonding" / "slaves").read_text().split()
        configured = active = 0
        for slave in slaves:
            state = _read_mii_status(master_dir, slave)
            configured += 1
            if state.strip() == "up":
                active += 1
        status[master] = (configured, active)
    return status


class BondingCollector(Collector):
    """Exposes the number of configured and active slaves per bonding master."""

    def update(self) -> Iterator[Metric]:
        statusfile = sys_file_path("class/net")
        try:
            stats = read_bonding_stats(statusfile)
        except FileNotFoundError:
            log.debug("Not collecting bonding, file does not exist: %s", statusfile)
            return
        for master, (slaves, active) in stats.items():
            yield BONDING_SLAVES.metric(slaves, master)
            yield BONDING_ACTIVE.metric(active, master)


register_collector("bonding", DEFAULT_ENABLED, BondingCollector)