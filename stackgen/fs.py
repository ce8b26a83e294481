"""Filesystem helpers for confined, atomic artifact writes."""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import Optional


class PathEscape(ValueError):
    """Raised when a relative artifact path would leave the workspace root."""


def normalize_relative(path: str) -> str:
    """Return ``path`` as a clean POSIX relative path.

    Leading ``./`` segments and duplicate separators are dropped. Absolute
    paths and any ``..`` segment raise :class:`PathEscape`.
    """
    text = path.replace("\\", "/").strip()
    if not text or text.startswith("/") or PurePosixPath(text).is_absolute():
        raise PathEscape(f"'{path}' is not a relative path")
    parts = [part for part in text.split("/") if part not in ("", ".")]
    if not parts:
        raise PathEscape(f"'{path}' does not name a file")
    if ".." in parts:
        raise PathEscape(f"'{path}' escapes the workspace root")
    return "/".join(parts)


def confine(root: Path, relative: str) -> Path:
    """Resolve ``relative`` under ``root``; symlinks may not lead outside it."""
    base = root.resolve()
    candidate = (base / normalize_relative(relative)).resolve()
    if candidate != base and base not in candidate.parents:
        raise PathEscape(f"'{relative}' resolves outside {base}")
    return candidate


def read_existing(path: Path) -> Optional[str]:
    """Return the file's text, or ``None`` when it does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


def atomic_write(path: Path, data: str, *, encoding: str = "utf-8") -> None:
    """Write ``data`` to ``path`` through a temp file and ``os.replace``.

    Readers see either the previous content or the complete new content,
    never a partial file.
    """
    target = Path(path)
    parent = target.parent
    fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=str(parent))
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        if target.exists():
            # mkstemp creates 0600 files; keep the mode of the file being replaced.
            os.chmod(temp_path, target.stat().st_mode & 0o777)
        else:
            os.chmod(temp_path, 0o666 & ~_UMASK)
        os.replace(temp_path, target)
    except BaseException:
        with contextlib.suppress(OSError):
            temp_path.unlink()
        raise


def _read_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


_UMASK = _read_umask()


__all__ = ["PathEscape", "atomic_write", "confine", "normalize_relative", "read_existing"]
