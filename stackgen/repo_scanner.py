"""Read-only workspace listing used as collector input."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from .config import CONFIG_FILENAME, load_config
from .errors import ConfigError
from .logging import get_logger
from .models import FileEntry, WorkspaceManifest

# Dependency, build-output and VCS directories never describe the stack itself.
SKIPPED_DIRECTORIES = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".venv",
        "venv",
        "node_modules",
        "vendor",
        "target",
        "dist",
        "build",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".gradle",
        ".idea",
    }
)

SKIPPED_FILES = frozenset({".DS_Store", "Thumbs.db"})

logger = get_logger("scanner")


@dataclass(frozen=True)
class IgnorePattern:
    """One gitignore-style pattern (``exclude_paths`` entries use the same syntax)."""

    glob: str
    negate: bool = False
    directory_only: bool = False
    rooted: bool = False

    @classmethod
    def parse(cls, line: str) -> Optional["IgnorePattern"]:
        text = line.strip()
        if not text or text.startswith("#"):
            return None
        negate = text.startswith("!")
        text = text[1:] if negate else text
        directory_only = text.endswith("/")
        text = text.rstrip("/")
        rooted = text.startswith("/") or "/" in text
        text = text.lstrip("/")
        if not text:
            return None
        return cls(glob=text, negate=negate, directory_only=directory_only, rooted=rooted)

    def matches(self, relative: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.rooted:
            return fnmatchcase(relative, self.glob)
        return any(fnmatchcase(segment, self.glob) for segment in relative.split("/"))


class IgnoreRules:
    """Ordered patterns; the last matching pattern decides, as in git."""

    def __init__(self, patterns: Iterable[IgnorePattern] = ()) -> None:
        self.patterns: Tuple[IgnorePattern, ...] = tuple(patterns)

    @classmethod
    def for_workspace(cls, root: Path) -> "IgnoreRules":
        patterns = [*_read_gitignore(root / ".gitignore"), *_read_config_excludes(root)]
        return cls(patterns)

    def ignored(self, relative: str, is_dir: bool) -> bool:
        verdict = False
        for pattern in self.patterns:
            if pattern.matches(relative, is_dir):
                verdict = not pattern.negate
        return verdict


def _read_gitignore(path: Path) -> List[IgnorePattern]:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Ignoring unreadable %s: %s", path, exc)
        return []
    return [pattern for pattern in map(IgnorePattern.parse, lines) if pattern is not None]


def _read_config_excludes(root: Path) -> List[IgnorePattern]:
    try:
        config = load_config(root / CONFIG_FILENAME)
    except ConfigError as exc:
        logger.warning("Not applying exclude_paths from %s: %s", CONFIG_FILENAME, exc)
        return []
    parsed = (IgnorePattern.parse(entry) for entry in config.exclude_paths)
    return [pattern for pattern in parsed if pattern is not None]


class WorkspaceScanner:
    """Lists workspace files in sorted order without opening any of them."""

    def scan(self, root: str | Path) -> WorkspaceManifest:
        base = Path(root).expanduser().resolve()
        if not base.exists():
            raise FileNotFoundError(f"Workspace path not found: {root}")
        if not base.is_dir():
            raise NotADirectoryError(f"Workspace path is not a directory: {root}")

        rules = IgnoreRules.for_workspace(base)
        entries = [entry for entry in self._walk(base, rules)]
        entries.sort(key=lambda entry: entry.path)
        logger.debug("Scanned %d file(s) under %s", len(entries), base)
        return WorkspaceManifest(root=str(base), files=tuple(entries))

    def _walk(self, base: Path, rules: IgnoreRules) -> Iterator[FileEntry]:
        for dirpath, dirnames, filenames in os.walk(base):
            prefix = Path(dirpath).relative_to(base).as_posix()
            prefix = "" if prefix == "." else f"{prefix}/"

            dirnames[:] = sorted(
                name
                for name in dirnames
                if name not in SKIPPED_DIRECTORIES and not rules.ignored(prefix + name, True)
            )

            for name in sorted(filenames):
                relative = prefix + name
                if name in SKIPPED_FILES or rules.ignored(relative, False):
                    continue
                try:
                    size = os.stat(os.path.join(dirpath, name)).st_size
                except OSError as exc:
                    logger.debug("Skipping %s: %s", relative, exc)
                    continue
                yield FileEntry(path=relative, size=size)


__all__ = ["IgnorePattern", "IgnoreRules", "WorkspaceScanner"]
