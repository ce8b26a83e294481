"""Environment-variable collector."""

from __future__ import annotations

from typing import Iterable, List, Mapping

from .base import Collector
from ..models import Signal, SignalKind, WorkspaceManifest

WATCHED_VARIABLES = (
    "GOPATH",
    "GOROOT",
    "VIRTUAL_ENV",
    "CONDA_PREFIX",
    "NVM_DIR",
    "JAVA_HOME",
)


class EnvironmentCollector(Collector):
    """Reports which toolchain variables are set, never their values."""

    name = "environment"

    def supports(self, manifest: WorkspaceManifest) -> bool:
        return True

    def collect(
        self, manifest: WorkspaceManifest, environ: Mapping[str, str]
    ) -> Iterable[Signal]:
        signals: List[Signal] = []
        for variable in WATCHED_VARIABLES:
            if environ.get(variable, "").strip():
                signals.append(
                    Signal(
                        name=f"env:{variable}",
                        kind=SignalKind.ENV_VAR,
                        strength=1.0,
                        source="environment",
                    )
                )
        return signals
