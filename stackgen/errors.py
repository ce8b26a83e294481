"""Error taxonomy for stackgen runs.

Planning-phase errors (``NeedsClarification``, ``AmbiguousStack``,
``PlanError``, ``PlanConflict``) abort the whole run. ``WriteConflict`` and the
probe errors are scoped to a single plan node or probe rule and are reported
next to the successful outcomes.
"""

from __future__ import annotations

from typing import Sequence


class StackgenError(RuntimeError):
    """Base class for every error raised by the engine."""


class ConfigError(StackgenError):
    """Raised when the configuration or answers file cannot be parsed."""


class NeedsClarification(StackgenError):
    """A required option has no explicit answer and no safe default."""

    def __init__(self, option: str, reason: str) -> None:
        self.option = option
        self.reason = reason
        super().__init__(f"Option '{option}' needs an explicit answer: {reason}")


class AmbiguousStack(NeedsClarification):
    """Tied or below-floor top stack candidates and no explicit override."""

    def __init__(self, candidates: Sequence[str]) -> None:
        self.candidates = tuple(candidates)
        names = ", ".join(self.candidates)
        if len(self.candidates) == 1:
            reason = f"only weak evidence points to {names}"
        else:
            reason = f"detected stacks tie for first place ({names})"
        super().__init__(
            "primary-stack",
            f"{reason}; choose one explicitly instead of letting the engine guess",
        )


class PlanError(StackgenError):
    """The generation plan cannot be trusted and no write is attempted."""


class PlanConflict(PlanError):
    """Two artifact specs resolve to the same target."""

    def __init__(self, path: str, spec_ids: Sequence[str]) -> None:
        self.path = path
        self.spec_ids = tuple(spec_ids)
        owners = ", ".join(self.spec_ids)
        super().__init__(
            f"Path '{path}' is produced by more than one artifact ({owners}); "
            "refusing to let the last write win"
        )


class WriteConflict(StackgenError):
    """A single node cannot be written without guessing."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ProbeError(StackgenError):
    """Base class for probe failures that still produce a classified result."""


class ProbeTimeout(ProbeError):
    """An external probe or remediation command exceeded its timeout."""

    def __init__(self, command: str, timeout: float) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(f"'{command}' timed out after {timeout:.1f}s")


class ProbeUnavailable(ProbeError):
    """The executable behind a probe could not be started."""

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"'{command}' is unavailable: {reason}")


__all__ = [
    "AmbiguousStack",
    "ConfigError",
    "NeedsClarification",
    "PlanConflict",
    "PlanError",
    "ProbeError",
    "ProbeTimeout",
    "ProbeUnavailable",
    "StackgenError",
    "WriteConflict",
]
