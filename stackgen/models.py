"""Core data models shared across stackgen components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class SignalKind(str, Enum):
    """Kinds of evidence a collector can observe."""

    FILE_PRESENCE = "file-presence"
    CONTENT_MATCH = "content-match"
    ENV_VAR = "env-var"
    EXTENSION = "extension"


@dataclass(frozen=True)
class FileEntry:
    """Metadata for an individual workspace file."""

    path: str
    size: int


@dataclass(frozen=True)
class WorkspaceManifest:
    """Read-only listing of the workspace used by collectors."""

    root: str
    files: Tuple[FileEntry, ...]

    def paths(self) -> set[str]:
        return {entry.path for entry in self.files}


@dataclass(frozen=True)
class Signal:
    """One immutable piece of observed evidence."""

    name: str
    kind: SignalKind
    strength: float
    source: str
    detail: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.strength <= 1.0:
            raise ValueError(f"Signal strength out of range for {self.name}: {self.strength}")

    def sort_key(self) -> Tuple[str, str, str]:
        return (self.name, self.source, self.detail or "")


@dataclass(frozen=True)
class StackIdentity:
    """A recognized technology stack and how sure the classifier is."""

    id: str
    confidence: float
    ambiguous: bool = False
    evidence: Tuple[str, ...] = ()


@dataclass
class DetectionResult:
    """Bundle of evidence and classification for one workspace."""

    root: str
    signals: List[Signal]
    identities: List[StackIdentity]

    def to_dict(self) -> Dict[str, object]:
        return {
            "root": self.root,
            "signals": [
                {
                    "name": signal.name,
                    "kind": signal.kind.value,
                    "strength": signal.strength,
                    "source": signal.source,
                    "detail": signal.detail,
                }
                for signal in self.signals
            ],
            "stacks": [
                {
                    "id": identity.id,
                    "confidence": identity.confidence,
                    "ambiguous": identity.ambiguous,
                    "evidence": list(identity.evidence),
                }
                for identity in self.identities
            ],
        }


@dataclass
class AnswerSet:
    """Explicit choices supplied by whatever front end drives the engine."""

    stacks: Optional[Tuple[str, ...]] = None
    primary_stack: Optional[str] = None
    options: Dict[str, object] = field(default_factory=dict)
    fix: bool = False

    def merged_with(self, defaults: Dict[str, object]) -> "AnswerSet":
        """Return a copy where ``defaults`` fill options this set leaves unset."""
        options = dict(defaults)
        options.update(self.options)
        return AnswerSet(
            stacks=self.stacks,
            primary_stack=self.primary_stack,
            options=options,
            fix=self.fix,
        )
