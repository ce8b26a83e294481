"""Incidental file-extension collector."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Mapping

from .base import Collector
from ..models import Signal, SignalKind, WorkspaceManifest

TRACKED_SUFFIXES = (".py", ".js", ".mjs", ".ts", ".tsx", ".go", ".java", ".kt")

# Number of files at which an extension counts as fully observed.
SATURATION = 5


class ExtensionCollector(Collector):
    """Counts source files per extension; the weakest kind of evidence."""

    name = "extensions"

    def collect(
        self, manifest: WorkspaceManifest, environ: Mapping[str, str]
    ) -> Iterable[Signal]:
        counts: Counter[str] = Counter()
        for entry in manifest.files:
            basename = entry.path.rsplit("/", 1)[-1]
            if "." not in basename:
                continue
            suffix = "." + basename.rsplit(".", 1)[-1].lower()
            if suffix in TRACKED_SUFFIXES:
                counts[suffix] += 1

        signals: List[Signal] = []
        for suffix in sorted(counts):
            count = counts[suffix]
            signals.append(
                Signal(
                    name=f"ext:{suffix}",
                    kind=SignalKind.EXTENSION,
                    strength=round(min(1.0, count / SATURATION), 4),
                    source=f"{count} file(s)",
                )
            )
        return signals
