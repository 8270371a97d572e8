"""Collector registry and the aggregate node collector."""

from __future__ import annotations

import abc
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable

from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name

log = logging.getLogger(__name__)

DEFAULT_ENABLED = True
DEFAULT_DISABLED = False

SCRAPE_DURATION_DESC = Desc(
    build_fq_name(NAMESPACE, "scrape", "collector_duration_seconds"),
    "node_exporter: Duration of a collector scrape.",
    ("collector",),
)
SCRAPE_SUCCESS_DESC = Desc(
    build_fq_name(NAMESPACE, "scrape", "collector_success"),
    "node_exporter: Whether a collector succeeded.",
    ("collector",),
)


class CollectorError(Exception):
    """Raised for unknown or disabled collectors."""


class Collector(abc.ABC):
    """A source of metrics."""

    @abc.abstractmethod
    def update(self) -> Iterable[Metric]:
        """Yield current metrics; raise on failure."""


_factories: dict[str, Callable[[], Collector]] = {}
_enabled: dict[str, bool] = {}


def register_collector(name: str, default_enabled: bool, factory: Callable[[], Collector]) -> None:
    _enabled[name] = bool(default_enabled)
    _factories[name] = factory


def set_collector_enabled(name: str, enabled: bool) -> None:
    if name not in _enabled:
        raise CollectorError(f"missing collector: {name}")
    _enabled[name] = bool(enabled)


def is_collector_enabled(name: str) -> bool:
    if name not in _enabled:
        raise CollectorError(f"missing collector: {name}")
    return _enabled[name]


def execute(name: str, collector: Collector) -> list[Metric]:
    """Run one collector and append its duration and success samples."""
    metrics: list[Metric] = []
    begin = time.perf_counter()
    try:
        for metric in collector.update():
            metrics.append(metric)
    except Exception as err:  # a failing collector must not break the scrape
        duration = time.perf_counter() - begin
        log.error("ERROR: %s collector failed after %fs: %s", name, duration, err)
        success = 0.0
    else:
        duration = time.perf_counter() - begin
        log.debug("OK: %s collector succeeded after %fs.", name, duration)
        success = 1.0
    metrics.append(SCRAPE_DURATION_DESC.metric(ValueType.GAUGE, duration, name))
    metrics.append(SCRAPE_SUCCESS_DESC.metric(ValueType.GAUGE, success, name))
    return metrics


class NodeCollector:
    """Runs every enabled collector, optionally restricted to named ones."""

    def __init__(self, *args: str) -> None:
        wanted = set()
        for name in args:
            if name not in _enabled:
                raise CollectorError(f"missing collector: {name}")
            if not _enabled[name]:
                raise CollectorError(f"disabled collector: {name}")
            wanted.add(name)
        self.collectors: dict[str, Collector] = {}
        for name, enabled in list(_enabled.items()):
            if not enabled:
                continue
            collector = _factories[name]()
            if not wanted or name in wanted:
                self.collectors[name] = collector

    def describe(self) -> list[Desc]:
        return [SCRAPE_DURATION_DESC, SCRAPE_SUCCESS_DESC]

    def collect(self) -> list[Metric]:
        if not self.collectors:
            return []
        with ThreadPoolExecutor(max_workers=len(self.collectors)) as pool:
            batches = pool.map(lambda item: execute(*item), self.collectors.items())
            return [metric for batch in batches for metric in batch]