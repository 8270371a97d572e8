import pytest

from nodemetrics.entropy import ENTROPY_AVAILABLE_DESC, EntropyCollector
from nodemetrics.helpers import configure_paths
from nodemetrics.metrics import ValueType


@pytest.fixture
def random_dir(tmp_path):
    configure_paths(procfs=str(tmp_path))
    directory = tmp_path / "sys" / "kernel" / "random"
    directory.mkdir(parents=True)
    yield directory
    configure_paths()


def test_update_reports_available_bits(random_dir):
    (random_dir / "entropy_avail").write_text("1337\n")
    metrics = list(EntropyCollector().update())
    assert len(metrics) == 1
    assert metrics[0].desc == ENTROPY_AVAILABLE_DESC
    assert metrics[0].value == 1337.0
    assert metrics[0].value_type is ValueType.GAUGE


def test_update_missing_file_raises(random_dir):
    with pytest.raises(RuntimeError, match="couldn't get entropy_avail"):
        list(EntropyCollector().update())


def test_update_invalid_value_raises(random_dir):
    (random_dir / "entropy_avail").write_text("-5\n")
    with pytest.raises(RuntimeError, match="couldn't get entropy_avail"):
        list(EntropyCollector().update())