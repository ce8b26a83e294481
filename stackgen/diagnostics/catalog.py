"""Default environment health check."""

from __future__ import annotations

from typing import Iterable, Tuple

from .probes import DiskSpaceProbe, ObservationState, PathProbe, ServiceProbe, ToolVersionProbe
from .rules import ProbeRule, ProbeStatus, Remediation

WARN = ProbeStatus.WARN
FAIL = ProbeStatus.FAIL

# Required tools fail when missing; optional toolchains only warn.
_REQUIRED = {
    ObservationState.ABSENT: FAIL,
    ObservationState.STALE: FAIL,
    ObservationState.OUTDATED: WARN,
}
_OPTIONAL = {
    ObservationState.ABSENT: WARN,
    ObservationState.STALE: WARN,
    ObservationState.OUTDATED: WARN,
}


def default_rules(workspace: str = ".") -> Tuple[ProbeRule, ...]:
    return (
        ProbeRule(
            id="git-version",
            title="git is installed",
            probe=ToolVersionProbe(("git", "--version"), minimum="2.20", recommended="2.40"),
            thresholds=_REQUIRED,
        ),
        ProbeRule(
            id="python-version",
            title="Python 3 interpreter",
            probe=ToolVersionProbe(("python3", "--version"), minimum="3.8", recommended="3.11"),
            thresholds=_REQUIRED,
        ),
        ProbeRule(
            id="node-version",
            title="Node.js runtime",
            probe=ToolVersionProbe(("node", "--version"), minimum="18", recommended="20"),
            thresholds=_OPTIONAL,
        ),
        ProbeRule(
            id="npm-version",
            title="npm package manager",
            probe=ToolVersionProbe(("npm", "--version"), minimum="8", recommended="10"),
            thresholds=_OPTIONAL,
            remediation=Remediation(
                description="upgrade npm with npm itself",
                argv=("npm", "install", "--global", "npm@latest"),
            ),
        ),
        ProbeRule(
            id="go-version",
            title="Go toolchain",
            probe=ToolVersionProbe(("go", "version"), minimum="1.20", recommended="1.22"),
            thresholds=_OPTIONAL,
        ),
        ProbeRule(
            id="docker-version",
            title="Docker CLI",
            probe=ToolVersionProbe(("docker", "--version"), minimum="20.10", recommended="24"),
            thresholds=_OPTIONAL,
        ),
        ProbeRule(
            id="docker-daemon",
            title="Docker daemon is reachable",
            probe=ServiceProbe(argv=("docker", "info", "--format", "{{.ServerVersion}}")),
            thresholds={
                ObservationState.ABSENT: WARN,
                ObservationState.UNREACHABLE: WARN,
            },
        ),
        ProbeRule(
            id="path-entries",
            title="PATH entries exist",
            probe=PathProbe(),
            thresholds={ObservationState.INVALID: WARN},
        ),
        ProbeRule(
            id="disk-space",
            title="Free disk space in the workspace",
            probe=DiskSpaceProbe(workspace, minimum_mb=1024),
            thresholds={ObservationState.INSUFFICIENT: WARN},
        ),
    )


def select_rules(rules: Iterable[ProbeRule], skip: Iterable[str] = ()) -> Tuple[ProbeRule, ...]:
    """Drop rules whose id is listed in ``skip`` (``diagnostics.skip`` in config)."""
    skipped = set(skip)
    return tuple(rule for rule in rules if rule.id not in skipped)


__all__ = ["default_rules", "select_rules"]
