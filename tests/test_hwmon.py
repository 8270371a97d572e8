import os

import pytest

from nodemetrics.helpers import configure_paths
from nodemetrics.hwmon import (
    HwMonCollector,
    SensorName,
    clean_metric_name,
    collect_sensor_data,
    explode_sensor_filename,
)


@pytest.fixture
def sysfs(tmp_path):
    root = tmp_path / "sys"
    root.mkdir()
    configure_paths(sysfs=str(root))
    yield root
    configure_paths()


def make_chip(directory, files):
    directory.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        (directory / name).write_text(content)
    return directory


def by_name(metrics):
    result = {}
    for metric in metrics:
        result.setdefault(metric.name, []).append(metric)
    return result


def test_clean_metric_name_is_idempotent_and_valid():
    for raw in ["Core 0", "__A-b.c__", "platform_applesmc.768", "coretemp\n"]:
        cleaned = clean_metric_name(raw)
        assert clean_metric_name(cleaned) == cleaned
        assert not cleaned.startswith("_") and not cleaned.endswith("_")
        assert all(c.isdigit() or c in "abcdefghijklmnopqrstuvwxyz:_" for c in cleaned)


def test_clean_metric_name_lowercases():
    assert clean_metric_name("CORETEMP") == clean_metric_name("coretemp") == "coretemp"


def test_explode_sensor_filename_with_property():
    assert explode_sensor_filename("temp1_input") == SensorName("temp", 1, "input")


def test_explode_sensor_filename_without_number():
    assert explode_sensor_filename("beep_enable") == SensorName("beep_enable", 0, "")


def test_explode_sensor_filename_rejects_leading_digit():
    assert explode_sensor_filename("1temp") is None


def test_collect_sensor_data_filters_unknown_types(tmp_path):
    chip = make_chip(
        tmp_path / "hwmon0",
        {"temp1_input": "55000\n", "fan2_min": "300\n", "name": "coretemp\n", "uevent": "x\n"},
    )
    data = {}
    collect_sensor_data(chip, data)
    assert data == {"temp1": {"input": "55000"}, "fan2": {"min": "300"}}


def test_hwmon_name_prefers_device(tmp_path):
    device = tmp_path / "devices" / "platform" / "coretemp.0"
    device.mkdir(parents=True)
    chip = make_chip(tmp_path / "hwmon0", {"name": "other\n"})
    os.symlink(device, chip / "device")
    assert HwMonCollector().hwmon_name(chip) == "platform_coretemp_0"


def test_hwmon_name_falls_back_to_name_then_dir(tmp_path):
    named = make_chip(tmp_path / "hwmon0", {"name": "coretemp\n"})
    unnamed = make_chip(tmp_path / "hwmon1", {})
    collector = HwMonCollector()
    assert collector.hwmon_name(named) == "coretemp"
    assert collector.hwmon_name(unnamed) == "hwmon1"


def test_human_readable_chip_name_requires_name_file(tmp_path):
    chip = make_chip(tmp_path / "hwmon0", {})
    with pytest.raises(FileNotFoundError):
        HwMonCollector().hwmon_human_readable_chip_name(chip)


def test_update_without_hwmon_class_yields_nothing(sysfs):
    assert list(HwMonCollector().update()) == []


def test_update_exposes_sensor_metrics(sysfs):
    make_chip(
        sysfs / "class" / "hwmon" / "hwmon0",
        {
            "name": "coretemp\n",
            "temp1_input": "55000\n",
            "temp1_label": "Core 0\n",
            "temp1_alarm": "0\n",
            "fan1_input": "800\n",
            "beep_enable": "1\n",
        },
    )
    metrics = by_name(HwMonCollector().update())

    chip = metrics["node_hwmon_chip_names"][0]
    assert chip.labels == {"chip": "coretemp", "chip_name": "coretemp"}

    temp = metrics["node_hwmon_temp_celsius"][0]
    assert temp.labels == {"chip": "coretemp", "sensor": "temp1"}
    assert temp.value == pytest.approx(55.0)

    label = metrics["node_hwmon_sensor_label"][0]
    assert label.labels["label"] == "core_0"

    assert metrics["node_hwmon_temp_alarm"][0].value == 0.0
    assert metrics["node_hwmon_fan_rpm"][0].value == 800.0
    assert metrics["node_hwmon_beep_enabled"][0].value == 1.0


def test_update_skips_unparsable_values(sysfs):
    make_chip(
        sysfs / "class" / "hwmon" / "hwmon0",
        {"name": "coretemp\n", "fan1_input": "garbage\n"},
    )
    names = {m.name for m in HwMonCollector().update()}
    assert "node_hwmon_fan_rpm" not in names
    assert "node_hwmon_chip_names" in names