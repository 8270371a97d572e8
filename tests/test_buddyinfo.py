import pytest

from nodemetrics.buddyinfo import BuddyinfoCollector, BuddyInfo, parse_buddy_info
from nodemetrics.helpers import configure_paths
from nodemetrics.registry import is_collector_enabled

SAMPLE = (
    "Node 0, zone      DMA      1      0      1      0      2      1      1      0      1      1      3\n"
    "Node 0, zone    DMA32    759    572    791    475    194     45     12      0      0      0      0\n"
    "Node 0, zone   Normal   4381   1093    185   1530    567    102      4      0      0      0      0\n"
)


@pytest.fixture
def procfs(tmp_path):
    root = tmp_path / "proc"
    root.mkdir()
    configure_paths(procfs=str(root))
    yield root
    configure_paths()


def test_parse_buddy_info():
    entries = parse_buddy_info(SAMPLE.splitlines())
    assert [e.zone for e in entries] == ["DMA", "DMA32", "Normal"]
    assert all(e.node == "0" for e in entries)
    assert entries[1].sizes[:3] == (759.0, 572.0, 791.0)
    assert all(len(e.sizes) == 11 for e in entries)


def test_parse_buddy_info_single_entry():
    entries = parse_buddy_info(["Node 1, zone Normal 5 6\n"])
    assert entries == [BuddyInfo("1", "Normal", (5.0, 6.0))]


def test_parse_buddy_info_too_few_fields():
    with pytest.raises(ValueError, match="invalid number of fields"):
        parse_buddy_info(["Node 0, zone\n"])


def test_parse_buddy_info_bucket_mismatch():
    with pytest.raises(ValueError, match="mismatch in number of buddyinfo buckets"):
        parse_buddy_info(["Node 0, zone DMA 1 2 3\n", "Node 0, zone Normal 1 2\n"])


def test_parse_buddy_info_invalid_value():
    with pytest.raises(ValueError, match="invalid value in buddyinfo"):
        parse_buddy_info(["Node 0, zone DMA 1 x 3\n"])


def test_collector_disabled_by_default():
    assert is_collector_enabled("buddyinfo") is False


def test_update_yields_one_metric_per_bucket(procfs):
    (procfs / "buddyinfo").write_text(SAMPLE)
    metrics = list(BuddyinfoCollector().update())
    assert len(metrics) == 33
    assert {m.name for m in metrics} == {"node_buddyinfo_blocks"}
    wanted = [
        m for m in metrics
        if m.labels == {"node": "0", "zone": "Normal", "size": "3"}
    ]
    assert [m.value for m in wanted] == [1530.0]


def test_update_missing_file_raises(procfs):
    with pytest.raises(RuntimeError, match="couldn't get buddyinfo"):
        list(BuddyinfoCollector().update())


def test_constructor_requires_procfs(tmp_path):
    configure_paths(procfs=str(tmp_path / "missing"))
    try:
        with pytest.raises(RuntimeError, match="failed to open procfs"):
            BuddyinfoCollector()
    finally:
        configure_paths()