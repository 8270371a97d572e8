"""Hardware sensor readings from the hwmon class in sysfs."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .helpers import sys_file_path
from .metrics import Desc, Metric, ValueType
from .registry import DEFAULT_ENABLED, Collector, register_collector

log = logging.getLogger(__name__)

HWMON_LABEL_NAMES = ("chip", "sensor")
HWMON_CHIP_NAME_LABEL_NAMES = ("chip", "chip_name")
HWMON_SENSOR_TYPES = frozenset(
    {
        "vrm", "beep_enable", "update_interval", "in", "cpu", "fan",
        "pwm", "temp", "curr", "power", "energy", "humidity",
        "intrusion",
    }
)

_INVALID_METRIC_CHARS = re.compile(r"[^a-z0-9:_]")
_FILENAME_FORMAT = re.compile(r"(?P<type>[^0-9]+)(?P<id>[0-9]*)?(_(?P<property>.+))?")
_READ_SIZE = 128


@dataclass(frozen=True)
class SensorName:
    """A sensor file name split into <kind><number>_<prop>."""

    kind: str
    number: int = 0
    prop: str = ""


def clean_metric_name(name: str) -> str:
    """Lower-case a name, replace invalid characters and trim underscores."""
    return _INVALID_METRIC_CHARS.sub("_", name.lower()).strip("_")


def explode_sensor_filename(filename: str) -> SensorName | None:
    """Split a sensor file name; None if it does not have the expected shape."""
    match = _FILENAME_FORMAT.fullmatch(filename)
    if match is None:
        return None
    digits = match.group("id")
    number = int(digits) if digits else 0
    return SensorName(match.group("type"), number, match.group("property") or "")


def _read_sensor_file(path: str) -> str:
    # Some broken drivers return EAGAIN forever; read once and give up on error.
    fd = os.open(path, os.O_RDONLY)
    try:
        raw = os.read(fd, _READ_SIZE)
    finally:
        os.close(fd)
    return raw.decode("utf-8", errors="replace")


def collect_sensor_data(directory: str | os.PathLike, data: dict[str, dict[str, str]]) -> None:
    """Add the readable sensor files of a directory to data, keyed by sensor."""
    directory = os.fspath(directory)
    for filename in sorted(os.listdir(directory)):
        sensor = explode_sensor_filename(filename)
        if sensor is None or sensor.kind not in HWMON_SENSOR_TYPES:
            continue
        try:
            raw = _read_sensor_file(os.path.join(directory, filename))
        except OSError:
            continue
        data.setdefault(f"{sensor.kind}{sensor.number}", {})[sensor.prop] = raw.strip("\n")


def _parse_float(text: str) -> float:
    if text != text.strip() or "_" in text:
        raise ValueError(f"invalid float {text!r}")
    return float(text)


def _gauge(name: str, help_text: str, value: float, labels: tuple[str, ...]) -> Metric:
    return Desc(name, help_text, HWMON_LABEL_NAMES).metric(ValueType.GAUGE, value, *labels)


def _element_metric(
    name: str, sensor_type: str, element: str, value: float, labels: tuple[str, ...]
) -> Metric:
    if element in ("fault", "alarm"):
        return _gauge(name, f"Hardware sensor {element} status ({sensor_type})", value, labels)
    if element == "beep":
        return _gauge(name + "_enabled", "Hardware monitor sensor has beeping enabled", value, labels)
    if sensor_type in ("in", "cpu"):
        return _gauge(name + "_volts", f"Hardware monitor for voltage ({element})", value * 0.001, labels)
    if sensor_type == "temp" and element != "type":
        shown = element or "input"
        return _gauge(
            name + "_celsius", f"Hardware monitor for temperature ({shown})", value * 0.001, labels
        )
    if sensor_type == "curr":
        return _gauge(name + "_amps", f"Hardware monitor for current ({element})", value * 0.001, labels)
    if sensor_type == "energy":
        return Desc(
            name + "_joule_total",
            f"Hardware monitor for joules used so far ({element})",
            HWMON_LABEL_NAMES,
        ).metric(ValueType.COUNTER, value / 1000000.0, *labels)
    if sensor_type == "power" and element == "accuracy":
        return _gauge(name, "Hardware monitor power meter accuracy, as a ratio", value / 1000000.0, labels)
    if sensor_type == "power" and element in (
        "average_interval",
        "average_interval_min",
        "average_interval_max",
    ):
        return _gauge(
            name + "_seconds",
            f"Hardware monitor power usage update interval ({element})",
            value * 0.001,
            labels,
        )
    if sensor_type == "power":
        return _gauge(
            name + "_watt", f"Hardware monitor for power usage in watts ({element})", value / 1000000.0, labels
        )
    if sensor_type == "humidity":
        return _gauge(
            name,
            "Hardware monitor for humidity, as a ratio (multiply with 100.0 to get the "
            f"humidity as a percentage) ({element})",
            value / 1000000.0,
            labels,
        )
    if sensor_type == "fan" and element in ("input", "min", "max", "target"):
        return _gauge(
            name + "_rpm", f"Hardware monitor for fan revolutions per minute ({element})", value, labels
        )
    return _gauge(name, f"Hardware monitor {sensor_type} element {element}", value, labels)


class HwMonCollector(Collector):
    """Exposes hwmon sensor readings, similar to lm-sensors."""

    def hwmon_name(self, directory: str | os.PathLike) -> str:
        """Derive a stable chip name for a hwmon directory."""
        directory = os.fspath(directory)
        try:
            device_path = os.path.realpath(os.path.join(directory, "device"), strict=True)
        except OSError:
            device_path = None
        if device_path is not None:
            prefix, dev_name = os.path.split(device_path)
            dev_type = os.path.basename(prefix.rstrip("/"))
            clean_name = clean_metric_name(dev_name)
            clean_type = clean_metric_name(dev_type)
            if clean_type and clean_name:
                return f"{clean_type}_{clean_name}"
            if clean_name:
                return clean_name

        try:
            sysname = Path(directory, "name").read_text()
        except OSError:
            sysname = ""
        if sysname:
            clean_name = clean_metric_name(sysname)
            if clean_name:
                return clean_name

        real_dir = os.path.realpath(directory, strict=True)
        clean_name = clean_metric_name(os.path.basename(real_dir))
        if clean_name:
            return clean_name
        raise RuntimeError(f"Could not derive a monitoring name for {directory}")

    def hwmon_human_readable_chip_name(self, directory: str | os.PathLike) -> str:
        """Return the cleaned content of the chip's name file."""
        sysname = Path(os.fspath(directory), "name").read_text()
        if sysname:
            clean_name = clean_metric_name(sysname)
            if clean_name:
                return clean_name
        raise RuntimeError(f"Could not derive a human-readable chip type for {os.fspath(directory)}")

    def update_hwmon(self, directory: str | os.PathLike) -> Iterator[Metric]:
        """Yield the metrics of one hwmon directory."""
        directory = os.fspath(directory)
        chip = self.hwmon_name(directory)

        data: dict[str, dict[str, str]] = {}
        collect_sensor_data(directory, data)
        device_dir = os.path.join(directory, "device")
        if os.path.exists(device_dir):
            collect_sensor_data(device_dir, data)

        try:
            chip_name = self.hwmon_human_readable_chip_name(directory)
        except (OSError, RuntimeError):
            chip_name = None
        if chip_name is not None:
            yield Desc(
                "node_hwmon_chip_names",
                "Annotation metric for human-readable chip names",
                HWMON_CHIP_NAME_LABEL_NAMES,
            ).metric(ValueType.GAUGE, 1.0, chip, chip_name)

        for sensor, sensor_data in data.items():
            parsed = explode_sensor_filename(sensor)
            sensor_type = parsed.kind if parsed is not None else ""
            labels = (chip, sensor)

            if "label" in sensor_data:
                label = clean_metric_name(sensor_data["label"])
                if label:
                    yield Desc(
                        "node_hwmon_sensor_label",
                        "Label for given chip and sensor",
                        ("chip", "sensor", "label"),
                    ).metric(ValueType.GAUGE, 1.0, chip, sensor, label)

            if sensor_type == "beep_enable":
                value = 1.0 if sensor_data.get("") == "1" else 0.0
                yield _gauge("node_hwmon_beep_enabled", "Hardware beep enabled", value, labels)
                continue
            if sensor_type == "vrm":
                try:
                    value = _parse_float(sensor_data.get("", ""))
                except ValueError:
                    continue
                yield _gauge(
                    "node_hwmon_voltage_regulator_version", "Hardware voltage regulator", value, labels
                )
                continue
            if sensor_type == "update_interval":
                try:
                    value = _parse_float(sensor_data.get("", ""))
                except ValueError:
                    continue
                yield _gauge(
                    "node_hwmon_update_interval_seconds",
                    "Hardware monitor update interval",
                    value * 0.001,
                    labels,
                )
                continue

            prefix = "node_hwmon_" + sensor_type
            for element, raw in sensor_data.items():
                if element == "label":
                    continue
                name = prefix
                if element == "input":
                    # input is the value itself
                    if "" in sensor_data:
                        name += "_input"
                elif element:
                    name += "_" + clean_metric_name(element)
                try:
                    value = _parse_float(raw)
                except ValueError:
                    continue
                yield _element_metric(name, sensor_type, element, value, labels)

    def update(self) -> Iterator[Metric]:
        hwmon_path = os.path.join(sys_file_path("class"), "hwmon")
        try:
            entries = sorted(os.listdir(hwmon_path))
        except FileNotFoundError:
            log.debug("hwmon collector metrics are not available for this system")
            return

        last_error: Exception | None = None
        for entry in entries:
            path = os.path.join(hwmon_path, entry)
            if not os.path.isdir(path):
                continue
            try:
                yield from self.update_hwmon(path)
            except (OSError, ValueError, RuntimeError) as err:
                last_error = err
        if last_error is not None:
            raise last_error


register_collector("hwmon", DEFAULT_ENABLED, HwMonCollector)