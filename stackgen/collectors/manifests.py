"""File-presence collector for manifests, lock files and tooling markers."""

from __future__ import annotations

from typing import Iterable, List, Mapping

from .base import Collector
from ..models import Signal, SignalKind, WorkspaceManifest

MARKER_FILES = (
    "go.mod",
    "go.sum",
    "package.json",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "pyproject.toml",
    "requirements.txt",
    "setup.py",
    "setup.cfg",
    "Pipfile",
    "poetry.lock",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
    "Dockerfile",
    "docker-compose.yml",
    "docker-compose.yaml",
    ".gitlab-ci.yml",
)

MARKER_DIRECTORIES = (".github/workflows/",)

# Nested manifests (for example ``web/package.json``) count, but less than root ones.
_NESTED_STRENGTH = 0.8


class ManifestCollector(Collector):
    """Reports which manifest and marker files exist in the workspace."""

    name = "manifests"

    def collect(
        self, manifest: WorkspaceManifest, environ: Mapping[str, str]
    ) -> Iterable[Signal]:
        signals: List[Signal] = []
        markers = set(MARKER_FILES)
        seen_dirs: set[str] = set()

        for entry in manifest.files:
            basename = entry.path.rsplit("/", 1)[-1]
            if basename in markers:
                nested = "/" in entry.path
                signals.append(
                    Signal(
                        name=f"file:{basename}",
                        kind=SignalKind.FILE_PRESENCE,
                        strength=_NESTED_STRENGTH if nested else 1.0,
                        source=entry.path,
                    )
                )
            for directory in MARKER_DIRECTORIES:
                if entry.path.startswith(directory) and directory not in seen_dirs:
                    seen_dirs.add(directory)
                    signals.append(
                        Signal(
                            name=f"file:{directory}",
                            kind=SignalKind.FILE_PRESENCE,
                            strength=1.0,
                            source=directory.rstrip("/"),
                        )
                    )
        return signals
