"""Base classes for signal collector plugins."""

from abc import ABC, abstractmethod
from typing import Iterable, Mapping

from ..models import Signal, WorkspaceManifest


class Collector(ABC):
    """A read-only probe over the workspace listing and the process environment.

    Collectors never open files outside the workspace, never write, and never
    mutate ``environ``. Registered instances are shared across runs, so any
    state must be local to :meth:`collect`.
    """

    name: str = "collector"

    def supports(self, manifest: WorkspaceManifest) -> bool:
        """Skip empty workspaces unless a subclass says otherwise."""
        return bool(manifest.files)

    @abstractmethod
    def collect(
        self, manifest: WorkspaceManifest, environ: Mapping[str, str]
    ) -> Iterable[Signal]:
        """Yield signals; strengths must already be within [0, 1]."""
