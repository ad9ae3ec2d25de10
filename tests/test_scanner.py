from pathlib import Path

from typeroute.repo.ignore import is_ignored_path, should_ignore_dir
from typeroute.repo.scanner import scan_source_files


def _touch(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_scan_matches_patterns_and_skips_ignored_dirs(tmp_path):
    a = _touch(tmp_path / "app" / "a.py")
    b = _touch(tmp_path / "app" / "sub" / "b.py")
    _touch(tmp_path / "app" / "notes.txt")
    _touch(tmp_path / ".venv" / "lib" / "c.py")
    _touch(tmp_path / "app" / "__pycache__" / "d.py")

    files = scan_source_files(tmp_path, ["**/*.py"])
    assert files == sorted([str(a.resolve()), str(b.resolve())])


def test_scan_deduplicates_overlapping_patterns_and_limits(tmp_path):
    for name in ("x.py", "y.py", "z.py"):
        _touch(tmp_path / "api" / name)

    files = scan_source_files(tmp_path, ["api/*.py", "**/*.py"])
    assert len(files) == 3
    assert len(scan_source_files(tmp_path, ["**/*.py"], max_files=2)) == 2


def test_extra_ignored_directories(tmp_path):
    _touch(tmp_path / "generated" / "_routes.py")
    keep = _touch(tmp_path / "main.py")
    assert scan_source_files(tmp_path, ["**/*.py"], ignore_dirs=["generated"]) == [str(keep.resolve())]


def test_ignore_helpers(tmp_path):
    assert should_ignore_dir(Path("node_modules"))
    assert not should_ignore_dir(Path("src"))
    assert should_ignore_dir(Path("out"), extra=["out"])
    assert is_ignored_path(tmp_path / ".git" / "x.py", tmp_path)
    assert not is_ignored_path(tmp_path / "src" / "x.py", tmp_path)
