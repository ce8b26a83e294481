"""Read-only probes that observe tool and machine state."""

from __future__ import annotations

import os
import re
import shutil
import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence, Tuple

from ..errors import ProbeUnavailable
from .runner import CommandRunner

_VERSION_PATTERN = r"(\d+(?:\.\d+)+|\d+)"


class ObservationState(str, Enum):
    OK = "ok"
    ABSENT = "absent"
    STALE = "stale"
    OUTDATED = "outdated"
    INSUFFICIENT = "insufficient"
    INVALID = "invalid"
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class Observation:
    """Raw probe outcome before threshold classification."""

    state: ObservationState
    evidence: str
    detail: Optional[str] = None


@dataclass(frozen=True)
class ProbeContext:
    runner: CommandRunner
    environ: Mapping[str, str] = field(default_factory=dict)
    timeout: float = 5.0


class Probe(ABC):
    """A single read-only check."""

    kind: str = "probe"

    @abstractmethod
    def observe(self, context: ProbeContext) -> Observation:
        """Inspect live state and report what was found."""


def parse_version(text: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in text.split("."))


class ToolVersionProbe(Probe):
    """Runs ``argv`` and compares the reported version against thresholds."""

    kind = "tool-version"

    def __init__(
        self,
        argv: Sequence[str],
        *,
        minimum: Optional[str] = None,
        recommended: Optional[str] = None,
        pattern: str = _VERSION_PATTERN,
    ) -> None:
        self.argv = tuple(argv)
        self.minimum = minimum
        self.recommended = recommended
        self.pattern = re.compile(pattern)

    def observe(self, context: ProbeContext) -> Observation:
        try:
            result = context.runner.run(self.argv, context.timeout)
        except ProbeUnavailable as exc:
            return Observation(ObservationState.ABSENT, f"{self.argv[0]} not found", exc.reason)
        line = result.first_line()
        if not result.ok:
            return Observation(
                ObservationState.INVALID,
                line or f"{self.argv[0]} produced no output",
                f"exit_code={result.exit_code}",
            )
        match = self.pattern.search(line or "")
        if match is None:
            return Observation(ObservationState.INVALID, line or "", "no version number in output")
        version = match.group(1)
        found = parse_version(version)
        if self.minimum and found < parse_version(self.minimum):
            return Observation(
                ObservationState.STALE, version, f"{version} is older than the minimum {self.minimum}"
            )
        if self.recommended and found < parse_version(self.recommended):
            return Observation(
                ObservationState.OUTDATED,
                version,
                f"{version} is older than the recommended {self.recommended}",
            )
        return Observation(ObservationState.OK, version)


class PathProbe(Probe):
    """Checks that every PATH entry exists and, optionally, that ``tool`` resolves."""

    kind = "path"

    def __init__(self, tool: Optional[str] = None) -> None:
        self.tool = tool

    def observe(self, context: ProbeContext) -> Observation:
        raw = context.environ.get("PATH", "")
        entries = [entry for entry in raw.split(os.pathsep) if entry]
        if not entries:
            return Observation(ObservationState.ABSENT, "PATH is empty")
        missing = [entry for entry in entries if not os.path.isdir(entry)]
        if self.tool is not None and shutil.which(self.tool, path=raw) is None:
            return Observation(ObservationState.ABSENT, f"{self.tool} is not on PATH")
        if missing:
            return Observation(
                ObservationState.INVALID,
                f"{len(missing)} of {len(entries)} PATH entries do not exist",
                ", ".join(missing),
            )
        return Observation(ObservationState.OK, f"{len(entries)} PATH entries")


class EnvVarProbe(Probe):
    kind = "env-var"

    def __init__(self, name: str) -> None:
        self.name = name

    def observe(self, context: ProbeContext) -> Observation:
        if context.environ.get(self.name):
            return Observation(ObservationState.OK, f"{self.name} is set")
        return Observation(ObservationState.ABSENT, f"{self.name} is not set")


class ServiceProbe(Probe):
    """Reachability of a service, by TCP connect or by a status command.

    Docker's daemon listens on a local socket rather than a port, so it is
    probed with ``argv`` (``docker info``) instead of ``host``/``port``.
    """

    kind = "service"

    def __init__(
        self,
        *,
        host: Optional[str] = None,
        port: Optional[int] = None,
        argv: Optional[Sequence[str]] = None,
    ) -> None:
        if argv is None and (host is None or port is None):
            raise ValueError("ServiceProbe needs either host and port or a status command")
        self.host = host
        self.port = port
        self.argv = tuple(argv) if argv is not None else None

    def observe(self, context: ProbeContext) -> Observation:
        if self.argv is not None:
            return self._observe_command(context)
        address = f"{self.host}:{self.port}"
        try:
            with socket.create_connection((self.host, self.port), timeout=context.timeout):
                return Observation(ObservationState.OK, f"{address} accepted a connection")
        except socket.timeout:
            return Observation(
                ObservationState.TIMEOUT,
                f"{address} did not answer",
                f"timed out after {context.timeout:.1f}s",
            )
        except OSError as exc:
            return Observation(ObservationState.UNREACHABLE, f"{address} refused", str(exc))

    def _observe_command(self, context: ProbeContext) -> Observation:
        assert self.argv is not None
        try:
            result = context.runner.run(self.argv, context.timeout)
        except ProbeUnavailable as exc:
            return Observation(ObservationState.ABSENT, f"{self.argv[0]} not found", exc.reason)
        if result.ok:
            return Observation(ObservationState.OK, f"{' '.join(self.argv)} succeeded")
        return Observation(
            ObservationState.UNREACHABLE,
            result.first_line() or f"{' '.join(self.argv)} failed",
            f"exit_code={result.exit_code}",
        )


class DiskSpaceProbe(Probe):
    kind = "disk-space"

    def __init__(self, path: str = ".", minimum_mb: int = 1024) -> None:
        self.path = path
        self.minimum_mb = minimum_mb

    def observe(self, context: ProbeContext) -> Observation:
        try:
            usage = shutil.disk_usage(self.path)
        except OSError as exc:
            return Observation(ObservationState.INVALID, f"cannot stat {self.path}", str(exc))
        free_mb = usage.free // (1024 * 1024)
        if free_mb < self.minimum_mb:
            return Observation(
                ObservationState.INSUFFICIENT,
                f"{free_mb} MB free",
                f"below the {self.minimum_mb} MB minimum",
            )
        return Observation(ObservationState.OK, f"{free_mb} MB free")


__all__ = [
    "DiskSpaceProbe",
    "EnvVarProbe",
    "Observation",
    "ObservationState",
    "PathProbe",
    "Probe",
    "ProbeContext",
    "ServiceProbe",
    "ToolVersionProbe",
    "parse_version",
]
