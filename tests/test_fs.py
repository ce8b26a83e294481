"""Tests for confined and atomic filesystem helpers."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from stackgen.fs import PathEscape, atomic_write, confine, normalize_relative, read_existing


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Dockerfile", "Dockerfile"),
        ("./main_test.go", "main_test.go"),
        ("src//app/./main.py", "src/app/main.py"),
        ("ci\\github.yml", "ci/github.yml"),
    ],
)
def test_normalize_relative_cleans_paths(raw: str, expected: str) -> None:
    assert normalize_relative(raw) == expected


@pytest.mark.parametrize("raw", ["/etc/passwd", "../outside", "a/../../b", "", "./"])
def test_normalize_relative_rejects_unsafe_paths(raw: str) -> None:
    with pytest.raises(PathEscape):
        normalize_relative(raw)


def test_confine_rejects_symlink_escape(tmp_path: Path) -> None:
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    root.mkdir()
    outside.mkdir()
    (root / "link").symlink_to(outside, target_is_directory=True)

    assert confine(root, "src/main.py") == (root / "src" / "main.py").resolve()
    with pytest.raises(PathEscape):
        confine(root, "link/file.txt")


def test_read_existing_returns_none_for_missing(tmp_path: Path) -> None:
    assert read_existing(tmp_path / "missing.txt") is None


def test_atomic_write_creates_file_without_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "out.txt"

    atomic_write(target, "hello\n")

    assert target.read_text(encoding="utf-8") == "hello\n"
    assert sorted(path.name for path in tmp_path.iterdir()) == ["out.txt"]


def test_atomic_write_preserves_existing_mode(tmp_path: Path) -> None:
    target = tmp_path / "run.sh"
    target.write_text("#!/bin/sh\n", encoding="utf-8")
    os.chmod(target, 0o750)

    atomic_write(target, "#!/bin/sh\necho hi\n")

    assert stat.S_IMODE(target.stat().st_mode) == 0o750
    assert target.read_text(encoding="utf-8").endswith("echo hi\n")


def test_atomic_write_cleans_up_when_replace_fails(tmp_path: Path, monkeypatch) -> None:
    target = tmp_path / "out.txt"

    def _boom(src, dst):
        raise OSError("disk on fire")

    monkeypatch.setattr("stackgen.fs.os.replace", _boom)

    with pytest.raises(OSError):
        atomic_write(target, "data")

    assert list(tmp_path.iterdir()) == []
