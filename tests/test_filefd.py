import pytest

from nodemetrics.filefd import FileFDStatCollector, parse_file_fd_stats
from nodemetrics.helpers import configure_paths

FILE_NR = "1024\t0\t1631329\n"


@pytest.fixture
def fs_dir(tmp_path):
    configure_paths(procfs=str(tmp_path))
    directory = tmp_path / "sys" / "fs"
    directory.mkdir(parents=True)
    yield directory
    configure_paths()


def test_file_fd_stats(tmp_path):
    path = tmp_path / "file-nr"
    path.write_text(FILE_NR)
    stats = parse_file_fd_stats(path)
    assert stats["allocated"] == "1024"
    assert stats["maximum"] == "1631329"


def test_too_few_fields_raises(tmp_path):
    path = tmp_path / "file-nr"
    path.write_text("1024\t0\n")
    with pytest.raises(ValueError, match="unexpected number of file stats"):
        parse_file_fd_stats(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_file_fd_stats(tmp_path / "absent")


def test_update_yields_allocated_and_maximum(fs_dir):
    (fs_dir / "file-nr").write_text(FILE_NR)
    metrics = {m.name: m.value for m in FileFDStatCollector().update()}
    assert metrics == {
        "node_filefd_allocated": 1024.0,
        "node_filefd_maximum": 1631329.0,
    }


def test_update_invalid_value_raises(fs_dir):
    (fs_dir / "file-nr").write_text("abc\t0\t1631329\n")
    with pytest.raises(ValueError, match="invalid value abc in file-nr"):
        list(FileFDStatCollector().update())


def test_update_missing_file_raises(fs_dir):
    with pytest.raises(RuntimeError, match="couldn't get file-nr"):
        list(FileFDStatCollector().update())