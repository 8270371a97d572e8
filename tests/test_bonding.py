import pytest

from nodemetrics.bonding import BondingCollector, read_bonding_stats
from nodemetrics.helpers import configure_paths


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


@pytest.fixture
def net_root(tmp_path):
    root = tmp_path / "class" / "net"
    _write(root / "bonding_masters", "bond0 dmz int\n")
    _write(root / "bond0" / "bonding" / "slaves", "\n")
    _write(root / "dmz" / "bonding" / "slaves", "eth0 eth4\n")
    _write(root / "dmz" / "lower_eth0" / "bonding_slave" / "mii_status", "up\n")
    _write(root / "dmz" / "slave_eth4" / "bonding_slave" / "mii_status", "up\n")
    _write(root / "int" / "bonding" / "slaves", "eth5 eth1\n")
    _write(root / "int" / "lower_eth5" / "bonding_slave" / "mii_status", "up\n")
    _write(root / "int" / "slave_eth1" / "bonding_slave" / "mii_status", "down\n")
    return root


@pytest.fixture
def sysfs(tmp_path):
    configure_paths(sysfs=str(tmp_path))
    yield tmp_path
    configure_paths()


def test_bonding(net_root):
    stats = read_bonding_stats(net_root)
    assert stats["bond0"] == (0, 0)
    assert stats["int"] == (2, 1)
    assert stats["dmz"] == (2, 2)


def test_missing_mii_status_raises(net_root):
    (net_root / "int" / "slave_eth1" / "bonding_slave" / "mii_status").unlink()
    with pytest.raises(FileNotFoundError):
        read_bonding_stats(net_root)


def test_missing_masters_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_bonding_stats(tmp_path)


def test_update_yields_slaves_and_active(sysfs, net_root):
    metrics = list(BondingCollector().update())
    slaves = {m.labels["master"]: m.value for m in metrics if m.name.endswith("_slaves")}
    active = {m.labels["master"]: m.value for m in metrics if m.name.endswith("_active")}
    assert slaves == {"bond0": 0.0, "dmz": 2.0, "int": 2.0}
    assert active == {"bond0": 0.0, "dmz": 2.0, "int": 1.0}


def test_update_without_bonding_is_empty(sysfs):
    assert list(BondingCollector().update()) == []