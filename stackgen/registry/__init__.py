"""Artifact template registry."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from .catalog import CATALOG
from .rendering import TemplateRenderer
from .specs import Applies, ArtifactSpec, MergePolicy, when
from ..resolver import ResolvedConfiguration


class ArtifactRegistry:
    """Static catalog of artifact specs keyed by id."""

    def __init__(
        self,
        specs: Iterable[ArtifactSpec] = CATALOG,
        renderer: Optional[TemplateRenderer] = None,
    ) -> None:
        self._specs: Dict[str, ArtifactSpec] = {}
        for spec in specs:
            if spec.id in self._specs:
                raise ValueError(f"Duplicate artifact spec id: {spec.id}")
            self._specs[spec.id] = spec
        self.renderer = renderer or TemplateRenderer()

    def __iter__(self) -> Iterator[ArtifactSpec]:
        return iter(sorted(self._specs.values(), key=lambda spec: spec.id))

    def __len__(self) -> int:
        return len(self._specs)

    def get(self, spec_id: str) -> ArtifactSpec:
        return self._specs[spec_id]

    def applicable(self, config: ResolvedConfiguration) -> List[ArtifactSpec]:
        """Specs whose predicate holds, ordered by id."""
        return [spec for spec in self if spec.applies(config)]


__all__ = [
    "Applies",
    "ArtifactRegistry",
    "ArtifactSpec",
    "MergePolicy",
    "TemplateRenderer",
    "when",
]
