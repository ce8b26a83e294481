"""Command Runner contract used by probes and remediations."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence

from ..errors import ProbeTimeout, ProbeUnavailable
from ..logging import get_logger

logger = get_logger("diagnostics.runner")


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def first_line(self) -> Optional[str]:
        combined = "\n".join(part for part in (self.stdout, self.stderr) if part).strip()
        return combined.splitlines()[0].strip() if combined else None


class CommandRunner(Protocol):
    """Anything that can run an argv with a timeout."""

    def run(self, argv: Sequence[str], timeout: float) -> CommandResult:
        ...


class SubprocessRunner:
    """Runs commands with :func:`subprocess.run`; never through a shell."""

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self.env = dict(env) if env is not None else None

    def run(self, argv: Sequence[str], timeout: float) -> CommandResult:
        command = " ".join(argv)
        logger.debug("Running %s (timeout %.1fs)", command, timeout)
        try:
            completed = subprocess.run(
                list(argv),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
                check=False,
                env=self.env,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProbeTimeout(command, timeout) from exc
        except OSError as exc:
            raise ProbeUnavailable(command, exc.strerror or str(exc)) from exc
        return CommandResult(
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_code=completed.returncode,
        )


__all__ = ["CommandResult", "CommandRunner", "SubprocessRunner"]
