"""Throwaway workspaces for collector, planner and orchestrator tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Dict, Mapping

from stackgen.models import WorkspaceManifest
from stackgen.repo_scanner import WorkspaceScanner


class WorkspaceBuilder:
    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "workspace"
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> "WorkspaceBuilder":
        """Write ``relative path -> text``; indentation is stripped so tests can inline files."""
        for relative, content in files.items():
            target = self.root.joinpath(*relative.split("/"))
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return self

    def read(self, relative: str) -> str:
        return self.root.joinpath(*relative.split("/")).read_text(encoding="utf-8")

    def snapshot(self) -> Dict[str, bytes]:
        return {
            path.relative_to(self.root).as_posix(): path.read_bytes()
            for path in sorted(self.root.rglob("*"))
            if path.is_file()
        }

    def scan(self) -> WorkspaceManifest:
        return WorkspaceScanner().scan(self.root)

    def path(self) -> Path:
        return self.root


__all__ = ["WorkspaceBuilder"]
