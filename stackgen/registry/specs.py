"""Artifact spec types and applicability predicates."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Optional, Tuple

from ..resolver import ResolvedConfiguration


class MergePolicy(str, Enum):
    """How a write interacts with an existing target."""

    OVERWRITE = "overwrite"
    SKIP_IF_EXISTS = "skip-if-exists"
    MERGE_BLOCK = "merge-block"


@dataclass(frozen=True)
class Applies:
    """Pure applicability predicate over a resolved configuration.

    Every populated field must hold: ``stacks`` needs at least one of the listed
    stacks in the configuration, ``primary`` pins the primary stack, and each
    ``(name, value)`` pair in ``options`` must equal the resolved option.
    """

    stacks: FrozenSet[str] = frozenset()
    primary: Optional[str] = None
    options: Tuple[Tuple[str, Any], ...] = ()

    def __call__(self, config: ResolvedConfiguration) -> bool:
        if self.stacks and not any(config.has_stack(stack) for stack in self.stacks):
            return False
        if self.primary is not None and config.primary_stack != self.primary:
            return False
        return all(config.get(name) == value for name, value in self.options)


def when(
    *options: Tuple[str, Any],
    stack: Optional[str] = None,
    primary: Optional[str] = None,
) -> Applies:
    """Shorthand used by the catalog: ``when(("docker", True), primary="go")``."""
    return Applies(
        stacks=frozenset({stack}) if stack else frozenset(),
        primary=primary,
        options=tuple(options),
    )


@dataclass(frozen=True)
class ArtifactSpec:
    """A rule describing one generatable file and how to merge it."""

    id: str
    category: str
    path: str
    template: str
    policy: MergePolicy
    applies: Applies
    stack: Optional[str] = None
    block: Optional[str] = None
    depends_on: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.policy is MergePolicy.MERGE_BLOCK and not self.block:
            raise ValueError(f"Artifact '{self.id}' uses merge-block without a block key")
        if self.policy is not MergePolicy.MERGE_BLOCK and self.block:
            raise ValueError(f"Artifact '{self.id}' declares a block key but does not merge")


__all__ = ["Applies", "ArtifactSpec", "MergePolicy", "when"]
