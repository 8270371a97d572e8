import io

import pytest

from nodemetrics.cpu import CPUCollector, CPUStat, parse_cpu_stats
from nodemetrics.helpers import configure_paths

STAT = (
    "cpu  301854 612 111922 8979004 3552 2 3944 0 0 0\n"
    "cpu0 44490 19 21045 1087069 220 1 3410 0 0 0\n"
    "cpu1 47869 23 16474 1110787 591 0 46 0 0 0\n"
    "intr 8885917 17 0 0 0 0\n"
    "ctxt 38014093\n"
)


@pytest.fixture(autouse=True)
def reset_paths():
    yield
    configure_paths()


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


def test_parse_cpu_stats_skips_total_and_other_lines():
    stats = parse_cpu_stats(io.StringIO(STAT))
    assert len(stats) == 2
    assert stats[0].user * 100 == pytest.approx(44490)
    assert stats[1].idle * 100 == pytest.approx(1110787)
    assert stats[0].softirq * 100 == pytest.approx(3410)


def test_parse_cpu_stats_fills_gaps_and_short_lines():
    stats = parse_cpu_stats(io.StringIO("cpu2 100 200\n"))
    assert len(stats) == 3
    assert stats[0] == CPUStat()
    assert stats[2].user == pytest.approx(1.0)
    assert stats[2].nice == pytest.approx(2.0)
    assert stats[2].guest_nice == 0


def test_parse_cpu_stats_rejects_bad_value():
    with pytest.raises(ValueError):
        parse_cpu_stats(io.StringIO("cpu0 12 abc 3\n"))


def test_update_stat_emits_all_modes(tmp_path):
    _write(tmp_path / "proc" / "stat", STAT)
    configure_paths(procfs=str(tmp_path / "proc"))
    metrics = list(CPUCollector().update_stat())
    assert len(metrics) == 20
    seconds = [m for m in metrics if m.name == "node_cpu_seconds_total"]
    assert {m.labels["mode"] for m in seconds} == {
        "user", "nice", "system", "idle", "iowait", "irq", "softirq", "steal",
    }
    guest = [m for m in metrics if m.name == "node_cpu_guest_seconds_total"]
    assert sorted(m.label_values for m in guest) == [
        ("0", "nice"), ("0", "user"), ("1", "nice"), ("1", "user"),
    ]


def test_update_stat_missing_file_raises(tmp_path):
    configure_paths(procfs=str(tmp_path / "proc"))
    with pytest.raises(OSError):
        list(CPUCollector().update_stat())


def _cpu(root, name, package=None, core=None, core_count=None, package_count=None):
    base = root / "sys" / "devices" / "system" / "cpu" / name
    base.mkdir(parents=True, exist_ok=True)
    if package is not None:
        _write(base / "topology" / "physical_package_id", f"{package}\n")
    if core is not None:
        _write(base / "topology" / "core_id", f"{core}\n")
    if core_count is not None:
        _write(base / "thermal_throttle" / "core_throttle_count", f"{core_count}\n")
    if package_count is not None:
        _write(base / "thermal_throttle" / "package_throttle_count", f"{package_count}\n")


def test_update_thermal_throttle(tmp_path):
    _cpu(tmp_path, "cpu0", package=0, core=0, core_count=5, package_count=7)
    _cpu(tmp_path, "cpu1", package=0, core=1, core_count=3, package_count=9)
    _cpu(tmp_path, "cpu2", package=0, core=0, core_count=11)
    _cpu(tmp_path, "cpu3", package=1)
    _cpu(tmp_path, "cpufreq")
    configure_paths(sysfs=str(tmp_path / "sys"))
    metrics = list(CPUCollector().update_thermal_throttle())
    packages = {
        m.label_values: m.value for m in metrics if m.name == "node_cpu_package_throttles_total"
    }
    cores = {m.label_values: m.value for m in metrics if m.name == "node_cpu_core_throttles_total"}
    assert packages == {("0",): 7}
    assert cores == {("0", "0"): 5, ("0", "1"): 3}


def test_update_combines_both_sources(tmp_path):
    _write(tmp_path / "proc" / "stat", STAT)
    _cpu(tmp_path, "cpu0", package=0, core=0, core_count=2, package_count=4)
    configure_paths(procfs=str(tmp_path / "proc"), sysfs=str(tmp_path / "sys"))
    names = {m.name for m in CPUCollector().update()}
    assert names == {
        "node_cpu_seconds_total",
        "node_cpu_guest_seconds_total",
        "node_cpu_package_throttles_total",
        "node_cpu_core_throttles_total",
    }