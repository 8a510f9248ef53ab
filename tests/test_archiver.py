import io
import zipfile

import pytest

from plan_scaffold.archiver import ArchiveError, build_project_zip
from tools.zip_utils import list_dirs, preview_zip


def _open(payload):
    return zipfile.ZipFile(io.BytesIO(payload))


def test_layout_under_single_root():
    """Test every entry lives under '<name>/' with directories first."""
    payload = build_project_zip(
        "proj",
        ["src"],
        [("README.md", "# proj\n"), ("src/main.py", "print('hi')\n")],
    )
    with _open(payload) as zf:
        names = zf.namelist()
        assert names == ["proj/", "proj/src/", "proj/README.md", "proj/src/main.py"]
        assert zf.read("proj/src/main.py") == b"print('hi')\n"
        assert zf.getinfo("proj/src/main.py").compress_type == zipfile.ZIP_DEFLATED
        assert zf.getinfo("proj/src/").is_dir()


def test_root_prefix_is_not_doubled():
    """Test paths already starting with the root are not nested twice."""
    payload = build_project_zip("proj", ["proj/src"], [("proj/src/a.py", "x = 1\n")])
    with _open(payload) as zf:
        assert "proj/src/a.py" in zf.namelist()
        assert not any(n.startswith("proj/proj/") for n in zf.namelist())


def test_project_name_is_sanitized():
    """Test unsafe characters in the project name do not reach the archive."""
    payload = build_project_zip("My Project!", [], [("a.py", "")])
    with _open(payload) as zf:
        assert zf.namelist() == ["My_Project/", "My_Project/a.py"]


def test_duplicate_files_keep_first():
    """Test a repeated path is written once with its first content."""
    payload = build_project_zip("p", [], [("a.py", "first\n"), ("./a.py", "second\n")])
    with _open(payload) as zf:
        assert zf.namelist() == ["p/", "p/a.py"]
        assert zf.read("p/a.py") == b"first\n"


def test_bytes_content_is_written_verbatim():
    """Test binary content passes through untouched."""
    payload = build_project_zip("p", [], [("blob.bin", b"\x00\x01\x02")])
    with _open(payload) as zf:
        assert zf.read("p/blob.bin") == b"\x00\x01\x02"


@pytest.mark.parametrize("bad", ["../escape.py", "/etc/passwd", "src/../../x.py"])
def test_unsafe_paths_raise(bad):
    """Test traversal and absolute paths abort packaging."""
    with pytest.raises(ArchiveError):
        build_project_zip("p", [], [(bad, "x")])


def test_file_at_root_raises():
    """Test a file that resolves to the root directory is rejected."""
    with pytest.raises(ArchiveError):
        build_project_zip("p", [], [("p", "x")])


def test_preview_reads_archive_back():
    """Test the preview strips the root and tags languages."""
    payload = build_project_zip(
        "proj",
        ["src", "data"],
        [("src/main.py", "print(1)\n"), ("data/raw.bin", b"\x00" * 10), ("Dockerfile", "FROM python:3.11\n")],
    )
    recs = {r["rel_path"]: r for r in preview_zip(payload)}
    assert sorted(recs) == ["Dockerfile", "data/raw.bin", "src/main.py"]
    assert recs["src/main.py"]["content"] == "print(1)\n"
    assert recs["src/main.py"]["language"] == "python"
    assert recs["src/main.py"]["archive_path"] == "proj/src/main.py"
    assert recs["data/raw.bin"]["content"] == ""
    assert recs["Dockerfile"]["language"] == "docker"
    assert list_dirs(payload) == ["proj/", "proj/data/", "proj/src/"]


def test_preview_truncates_large_files():
    """Test long text is cut at the byte limit with a marker."""
    payload = build_project_zip("p", [], [("big.txt", "a" * 50)])
    (rec,) = preview_zip(payload, max_bytes=10)
    assert rec["content"] == "a" * 10 + "\n… (truncated)"
    assert rec["size"] == 50
